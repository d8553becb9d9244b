"""Unit tests for configuration file handling."""

import json
import os

import pytest

from agentcore_cli.lib.config import (
    ConfigIO,
    ConfigurationError,
    get_deploy_config,
    init_project,
    load_project,
    validate_aws_region,
    validate_resource_name,
)
from agentcore_cli.lib.errors import DuplicateNameError
from agentcore_cli.lib.models import (
    AwsDeploymentTarget,
    Credential,
    DeployedState,
    DiscoveredStack,
    ResourceKind,
)


class TestValidation:
    @pytest.mark.parametrize("region", ["us-east-2", "eu-west-1", "ap-southeast-2"])
    def test_valid_regions(self, region):
        validate_aws_region(region)

    @pytest.mark.parametrize("region", ["us-east", "US-EAST-2", "useast2", ""])
    def test_invalid_regions(self, region):
        with pytest.raises(ConfigurationError, match="Invalid region"):
            validate_aws_region(region)

    def test_resource_names(self):
        """Test names must start with a letter and use word characters."""
        validate_resource_name("MyAgent_2")
        for bad in ["", "2agent", "my-agent", "a" * 49]:
            with pytest.raises(ConfigurationError):
                validate_resource_name(bad)


class TestConfigIO:
    """Tests for reading and writing files under agentcore/."""

    def test_paths(self, tmp_path):
        config_io = ConfigIO(tmp_path)

        assert config_io.project_path == tmp_path / "agentcore" / "agentcore.json"
        assert config_io.targets_path == tmp_path / "agentcore" / "aws-targets.json"
        assert config_io.deployed_state_path == tmp_path / "agentcore" / ".cli" / "deployed-state.json"
        assert config_io.env_path == tmp_path / "agentcore" / ".env.local"
        assert config_io.cdk_project_dir == tmp_path / "agentcore" / "cdk"

    def test_project_round_trip(self, config_io, sample_spec):
        """Test the project file is written as indented JSON and read back."""
        config_io.write_project_spec(sample_spec)

        text = config_io.project_path.read_text()
        assert text.endswith("}\n")
        assert json.loads(text)["name"] == "demo"
        assert config_io.read_project_spec() == sample_spec
        assert config_io.config_exists("project")

    def test_missing_project(self, config_io):
        with pytest.raises(ConfigurationError, match="agentcore init"):
            config_io.read_project_spec()

    def test_invalid_json(self, config_io):
        config_io.project_path.parent.mkdir(parents=True)
        config_io.project_path.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Could not parse"):
            config_io.read_project_spec()

    def test_invalid_spec(self, config_io, sample_spec):
        """Test a file that breaks graph invariants is rejected on read."""
        data = sample_spec.to_dict()
        data["memories"][0]["ownerAgent"] = "B"
        config_io.project_path.parent.mkdir(parents=True)
        config_io.project_path.write_text(json.dumps(data))

        with pytest.raises(ConfigurationError, match="Invalid project specification"):
            config_io.read_project_spec()

    @pytest.mark.parametrize(
        "data",
        [
            {"name": "demo", "agents": [1]},
            {"name": "demo", "agents": [{"name": "A", "runtime": "CodeZip"}]},
        ],
    )
    def test_wrong_shape(self, config_io, data):
        """Test entries of the wrong JSON type are reported as configuration errors."""
        config_io.project_path.parent.mkdir(parents=True)
        config_io.project_path.write_text(json.dumps(data))

        with pytest.raises(ConfigurationError, match="Invalid project specification"):
            config_io.read_project_spec()

    def test_missing_optional_files(self, config_io):
        """Test absent targets and state files read as empty."""
        assert config_io.read_aws_deployment_targets() == []
        assert config_io.read_deployed_state() == DeployedState()
        assert config_io.read_env_file() == {}
        assert not config_io.config_exists("state")

    def test_deployed_state(self, config_io):
        stack = DiscoveredStack(stack_name="AgentCore-demo-dev", status="CREATE_COMPLETE")
        config_io.write_deployed_state(DeployedState(targets={"dev": stack}))

        assert config_io.read_deployed_state().targets == {"dev": stack}

    def test_env_file(self, config_io):
        """Test secrets are written and read through python-dotenv."""
        config_io.set_env_var("AGENTCORE_CREDENTIAL_OPENAI", "sk-123")
        config_io.set_env_var("OTHER", "value")

        assert config_io.read_env_file() == {
            "AGENTCORE_CREDENTIAL_OPENAI": "sk-123",
            "OTHER": "value",
        }

    def test_unknown_config_kind(self, config_io):
        with pytest.raises(ValueError):
            config_io.config_exists("secrets")


class TestLoadProject:
    """Tests for the load_project context manager."""

    def test_saves_on_success(self, project_io):
        with load_project(project_io) as graph:
            graph.add_owned_resource(ResourceKind.IDENTITY, Credential(name="Tavily"))

        assert project_io.read_project_spec().find(ResourceKind.IDENTITY, "Tavily") is not None

    def test_no_write_on_failure(self, project_io):
        """Test a failed operation leaves the file untouched."""
        before = project_io.project_path.read_text()

        with pytest.raises(DuplicateNameError):
            with load_project(project_io) as graph:
                graph.add_owned_resource(ResourceKind.IDENTITY, Credential(name="OpenAI"))

        assert project_io.project_path.read_text() == before


class TestInitProject:
    def test_creates_files(self, config_io):
        spec = init_project(config_io, "demo")

        assert spec.name == "demo"
        assert config_io.config_exists("project")
        assert config_io.read_aws_deployment_targets() == []

    def test_refuses_existing(self, project_io):
        with pytest.raises(ConfigurationError, match="already exists"):
            init_project(project_io, "other")


class TestGetDeployConfig:
    """Tests for deployment target resolution."""

    def test_single_target_default(self, project_io):
        config = get_deploy_config(project_io)

        assert config.target.name == "dev"
        assert config.aws_region == "us-east-2"
        assert not config.enable_kms

    def test_no_targets(self, config_io, sample_spec):
        config_io.write_project_spec(sample_spec)

        with pytest.raises(ConfigurationError, match="add target"):
            get_deploy_config(config_io)

    def test_multiple_targets_need_name(self, project_io):
        """Test an explicit target is required once there are several."""
        targets = project_io.read_aws_deployment_targets()
        targets.append(AwsDeploymentTarget(name="prod", region="us-west-2", account="123456789012"))
        project_io.write_aws_deployment_targets(targets)

        with pytest.raises(ConfigurationError, match="pass --target"):
            get_deploy_config(project_io)
        assert get_deploy_config(project_io, "prod").aws_region == "us-west-2"

    def test_unknown_target(self, project_io):
        with pytest.raises(ConfigurationError, match="'staging' not found"):
            get_deploy_config(project_io, "staging")

    def test_sets_profile(self, project_io, monkeypatch):
        """Test the AWS profile is exported for the CDK subprocess."""
        monkeypatch.setenv("AWS_PROFILE", "default")

        config = get_deploy_config(project_io, aws_profile="sso-dev", enable_kms=True)

        assert os.environ["AWS_PROFILE"] == "sso-dev"
        assert config.enable_kms
