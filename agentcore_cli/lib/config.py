"""Project configuration files: loading, saving and validation."""

import json
import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from dotenv import dotenv_values, set_key

from .errors import ResourceGraphError
from .graph import ResourceGraph
from .models import AwsDeploymentTarget, DeployedState, ProjectSpec

logger = logging.getLogger(__name__)

CONFIG_DIR = "agentcore"
PROJECT_FILE = "agentcore.json"
TARGETS_FILE = "aws-targets.json"
STATE_DIR = ".cli"
DEPLOYED_STATE_FILE = "deployed-state.json"
ENV_FILE = ".env.local"
CDK_DIR = "cdk"


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


@dataclass
class DeployConfig:
    """Validated deployment configuration."""

    target: AwsDeploymentTarget
    enable_kms: bool = False
    aws_profile: str | None = None

    @property
    def aws_region(self) -> str:
        return self.target.region


def validate_aws_region(region: str) -> None:
    """Validate AWS region format (e.g., us-east-2)."""
    pattern = r"^[a-z]{2}-[a-z]+-[0-9]+$"
    if not re.match(pattern, region):
        raise ConfigurationError(
            f"Invalid region format: {region} (expected format: us-east-2)"
        )


def validate_resource_name(name: str) -> None:
    """Validate resource name (letter first, then alphanumerics and underscores)."""
    # AgentCore names must match ^[a-zA-Z][a-zA-Z0-9_]{0,47}$
    pattern = r"^[a-zA-Z][a-zA-Z0-9_]{0,47}$"
    if not re.match(pattern, name):
        raise ConfigurationError(
            f"Invalid name: {name} (start with a letter, then letters, digits or underscores; max 48)"
        )


class ConfigIO:
    """
    Reads and writes the project's configuration files.

    All paths live under <base_dir>/agentcore. The secrets file is only
    read here, except for set_env_var which the `add identity` command uses.
    """

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.config_dir = self.base_dir / CONFIG_DIR

    @property
    def project_path(self) -> Path:
        return self.config_dir / PROJECT_FILE

    @property
    def targets_path(self) -> Path:
        return self.config_dir / TARGETS_FILE

    @property
    def deployed_state_path(self) -> Path:
        return self.config_dir / STATE_DIR / DEPLOYED_STATE_FILE

    @property
    def env_path(self) -> Path:
        return self.config_dir / ENV_FILE

    @property
    def cdk_project_dir(self) -> Path:
        return self.config_dir / CDK_DIR

    def config_exists(self, kind: str) -> bool:
        """Check whether the `project`, `targets` or `state` file exists."""
        paths = {
            "project": self.project_path,
            "targets": self.targets_path,
            "state": self.deployed_state_path,
        }
        if kind not in paths:
            raise ValueError(f"Unknown config kind: {kind}")
        return paths[kind].exists()

    # Project specification

    def read_project_spec(self) -> ProjectSpec:
        data = self._read_json(self.project_path, expected=dict)
        try:
            spec = ProjectSpec.from_dict(data)
            spec.validate()
        except (KeyError, ValueError, TypeError, AttributeError, ResourceGraphError) as e:
            raise ConfigurationError(f"Invalid project specification {self.project_path}: {e}") from e
        return spec

    def write_project_spec(self, spec: ProjectSpec) -> None:
        self._write_json(self.project_path, spec.to_dict())

    # Deployment targets

    def read_aws_deployment_targets(self) -> list[AwsDeploymentTarget]:
        if not self.targets_path.exists():
            return []
        data = self._read_json(self.targets_path, expected=list)
        try:
            return [AwsDeploymentTarget.from_dict(t) for t in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Invalid deployment targets {self.targets_path}: {e}") from e

    def write_aws_deployment_targets(self, targets: list[AwsDeploymentTarget]) -> None:
        self._write_json(self.targets_path, [t.to_dict() for t in targets])

    # Deployed state

    def read_deployed_state(self) -> DeployedState:
        if not self.deployed_state_path.exists():
            return DeployedState()
        data = self._read_json(self.deployed_state_path, expected=dict)
        try:
            return DeployedState.from_dict(data)
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(
                f"Invalid deployed state {self.deployed_state_path}: {e}"
            ) from e

    def write_deployed_state(self, state: DeployedState) -> None:
        self._write_json(self.deployed_state_path, state.to_dict())

    # Local secrets

    def read_env_file(self) -> dict[str, str]:
        """Load local secrets with python-dotenv. A missing file means no secrets."""
        if not self.env_path.exists():
            return {}
        return {k: v for k, v in dotenv_values(self.env_path).items() if v is not None}

    def set_env_var(self, key: str, value: str) -> None:
        self.env_path.parent.mkdir(parents=True, exist_ok=True)
        self.env_path.touch(exist_ok=True)
        set_key(str(self.env_path), key, value)

    # Helpers

    def _read_json(self, path: Path, expected: type) -> Any:
        if not path.exists():
            raise ConfigurationError(f"{path} not found. Run `agentcore init` first.")
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Could not parse {path}: {e}") from e
        if not isinstance(data, expected):
            raise ConfigurationError(f"{path} must contain a JSON {expected.__name__}")
        return data

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        logger.debug("Wrote %s", path)


@contextmanager
def load_project(config_io: ConfigIO) -> Iterator[ResourceGraph]:
    """
    Load the project at the start of an operation and save it at the end.

    Nothing is written if the block raises.
    """
    graph = ResourceGraph(config_io.read_project_spec())
    yield graph
    config_io.write_project_spec(graph.spec)


def init_project(config_io: ConfigIO, name: str) -> ProjectSpec:
    """Create an empty project specification and targets file."""
    validate_resource_name(name)
    if config_io.config_exists("project"):
        raise ConfigurationError(f"Project already exists at {config_io.project_path}")
    spec = ProjectSpec(name=name)
    config_io.write_project_spec(spec)
    if not config_io.config_exists("targets"):
        config_io.write_aws_deployment_targets([])
    return spec


def get_deploy_config(
    config_io: ConfigIO,
    target_name: str | None = None,
    aws_profile: str | None = None,
    enable_kms: bool = False,
) -> DeployConfig:
    """Resolve and validate the deployment target for a deploy run."""
    targets = config_io.read_aws_deployment_targets()
    if not targets:
        raise ConfigurationError(
            f"No deployment targets in {config_io.targets_path}. Add one with `agentcore add target`."
        )

    if target_name:
        matches = [t for t in targets if t.name == target_name]
        if not matches:
            raise ConfigurationError(f"Deployment target '{target_name}' not found")
        target = matches[0]
    elif len(targets) == 1:
        target = targets[0]
    else:
        names = ", ".join(t.name for t in targets)
        raise ConfigurationError(f"Multiple deployment targets ({names}); pass --target")

    validate_aws_region(target.region)

    # Set AWS_PROFILE environment variable if provided
    if aws_profile:
        os.environ["AWS_PROFILE"] = aws_profile

    return DeployConfig(target=target, enable_kms=enable_kms, aws_profile=aws_profile)
