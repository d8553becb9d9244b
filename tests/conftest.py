"""Pytest fixtures for project, graph and AWS tests."""

from unittest.mock import MagicMock

import pytest

from agentcore_cli.lib.config import ConfigIO
from agentcore_cli.lib.graph import ResourceGraph
from agentcore_cli.lib.models import (
    AgentEnvSpec,
    AwsDeploymentTarget,
    CodeZipRuntime,
    Credential,
    MemoryProvider,
    OwnedIdentityProvider,
    OwnedMemory,
    ProjectSpec,
)


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Keep tests away from real AWS configuration."""
    monkeypatch.setenv("AWS_REGION", "us-east-2")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


def make_agent(name: str) -> AgentEnvSpec:
    return AgentEnvSpec(
        name=name,
        runtime=CodeZipRuntime(code_location=f"app/{name}", entrypoint="main.py"),
    )


@pytest.fixture
def empty_spec():
    return ProjectSpec(name="demo")


@pytest.fixture
def sample_spec():
    """Agent A owns identity OpenAI and memory M; agent B owns nothing."""
    agent_a = make_agent("A")
    agent_a.identity_providers.append(
        OwnedIdentityProvider(name="OpenAI", env_var_name="AGENTCORE_CREDENTIAL_OPENAI")
    )
    agent_a.memory_providers.append(OwnedMemory(name="M", env_var_name="MEMORY_M_ID"))
    return ProjectSpec(
        name="demo",
        agents=[agent_a, make_agent("B")],
        credentials=[Credential(name="OpenAI")],
        memories=[MemoryProvider(name="M", owner_agent="A")],
    )


@pytest.fixture
def graph(sample_spec):
    return ResourceGraph(sample_spec)


@pytest.fixture
def config_io(tmp_path):
    """ConfigIO rooted at an empty temporary directory."""
    return ConfigIO(tmp_path)


@pytest.fixture
def project_io(config_io, sample_spec):
    """ConfigIO with the sample project and one deployment target on disk."""
    config_io.write_project_spec(sample_spec)
    config_io.write_aws_deployment_targets(
        [AwsDeploymentTarget(name="dev", region="us-east-2", account="123456789012")]
    )
    return config_io


@pytest.fixture
def mock_session():
    """boto3 session whose clients are one MagicMock per service name."""
    clients = {}

    def client(service_name, region_name=None):
        if service_name not in clients:
            clients[service_name] = MagicMock(name=service_name)
        return clients[service_name]

    session = MagicMock()
    session.client.side_effect = client
    session.clients = clients
    return session
