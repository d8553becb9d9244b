"""Discovery and teardown of deployed project stacks."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import boto3

from .aws import find_stack
from .commands import CdkToolkit
from .config import ConfigIO, ConfigurationError
from .errors import CdkProjectNotFoundError
from .models import AwsDeploymentTarget, DiscoveredStack

logger = logging.getLogger(__name__)


@dataclass
class DeployedTarget:
    target: AwsDeploymentTarget
    stack: DiscoveredStack


@dataclass
class TargetLookup:
    """Outcome of looking up one target: a stack, nothing, or an error."""

    target: AwsDeploymentTarget
    stack: DiscoveredStack | None = None
    error: Exception | None = None


@dataclass
class DiscoverDeployedResult:
    project_name: str
    deployed_targets: list[DeployedTarget] = field(default_factory=list)
    unreachable_targets: list[str] = field(default_factory=list)


def lookup_target(
    session: boto3.Session, project_name: str, target: AwsDeploymentTarget
) -> TargetLookup:
    try:
        stack = find_stack(session, target.region, project_name, target.name)
    except Exception as e:
        return TargetLookup(target=target, error=e)
    return TargetLookup(target=target, stack=stack)


def discover_deployed_targets(
    config_io: ConfigIO, session: boto3.Session
) -> DiscoverDeployedResult:
    """
    Find the targets that currently have a stack for this project.

    Best effort: a target that cannot be checked (no credentials, network
    error) is left out of deployed_targets instead of failing the call.
    """
    project_spec = config_io.read_project_spec()
    targets = config_io.read_aws_deployment_targets()

    lookups = [lookup_target(session, project_spec.name, target) for target in targets]

    result = DiscoverDeployedResult(project_name=project_spec.name)
    for lookup in lookups:
        if lookup.error is not None:
            logger.warning("Could not check target %s: %s", lookup.target.name, lookup.error)
            result.unreachable_targets.append(lookup.target.name)
        elif lookup.stack is not None:
            result.deployed_targets.append(DeployedTarget(lookup.target, lookup.stack))
    return result


def record_deployed_target(config_io: ConfigIO, target_name: str, stack: DiscoveredStack) -> None:
    """Record a confirmed deployment in the deployed state file."""
    state = config_io.read_deployed_state()
    state.targets[target_name] = stack
    config_io.write_deployed_state(state)


def destroy_target(
    target: DeployedTarget,
    cdk_project_dir: Path,
    config_io: ConfigIO,
    toolkit: CdkToolkit | None = None,
    profile: str | None = None,
) -> None:
    """
    Destroy a target's stack, then drop it from the deployed state.

    Raises:
        CdkProjectNotFoundError: If the CDK project directory is missing.
            Nothing remote is touched in that case.
        CommandError: If the destroy itself fails. Local state is kept.
    """
    cdk_project_dir = Path(cdk_project_dir)
    if not cdk_project_dir.exists():
        raise CdkProjectNotFoundError(
            f"CDK project not found at {cdk_project_dir}. Cannot destroy without CDK project."
        )

    toolkit = toolkit or CdkToolkit(cdk_project_dir, profile=profile)
    toolkit.initialize()
    toolkit.destroy([target.stack.stack_name])
    logger.info("Destroyed stack %s for target %s", target.stack.stack_name, target.target.name)

    # The remote destroy already succeeded; a stale cache entry is harmless
    try:
        state = config_io.read_deployed_state()
        if target.target.name in state.targets:
            del state.targets[target.target.name]
            config_io.write_deployed_state(state)
    except (ConfigurationError, OSError) as e:
        logger.warning("Could not update deployed state after destroy: %s", e)
