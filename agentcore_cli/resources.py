"""Add, bind and remove project resources."""

from contextlib import contextmanager
from typing import Annotated

import typer

from .lib.aws import detect_account, get_session
from .lib.config import (
    ConfigIO,
    ConfigurationError,
    load_project,
    validate_aws_region,
    validate_resource_name,
)
from .lib.console import print_error, print_success, print_warning
from .lib.errors import AwsCredentialsError, ResourceGraphError
from .lib.graph import default_credential_env_var
from .lib.models import (
    API_KEY_PROVIDER,
    Access,
    AgentEnvSpec,
    AwsDeploymentTarget,
    CodeZipRuntime,
    ContainerImageRuntime,
    Credential,
    Gateway,
    GatewayAuthorizerType,
    MemoryProvider,
    MemoryStrategy,
    ResourceKind,
    TargetLanguage,
)

add_app = typer.Typer(help="Add a resource to the project")
bind_app = typer.Typer(help="Grant an agent access to an existing resource")
remove_app = typer.Typer(help="Remove a resource from the project")


@contextmanager
def command_errors():
    """Turn validation failures into a red message and exit code 1."""
    try:
        yield
    except (ResourceGraphError, ConfigurationError, AwsCredentialsError, ValueError) as e:
        print_error(str(e))
        raise typer.Exit(1)


def parse_strategies(value: str) -> list[MemoryStrategy]:
    names = [s.strip().upper() for s in value.split(",") if s.strip()]
    try:
        return [MemoryStrategy(name) for name in names]
    except ValueError:
        valid = ", ".join(s.value for s in MemoryStrategy)
        raise ConfigurationError(f"Unknown memory strategy in '{value}' (valid: {valid})")


# add


@add_app.command("agent")
def add_agent(
    name: Annotated[str, typer.Option("--name", help="Agent name")],
    code_location: Annotated[str, typer.Option("--code-location", help="Agent source directory")],
    entrypoint: Annotated[
        str | None, typer.Option("--entrypoint", help="Entrypoint file (required for CodeZip)")
    ] = None,
    artifact: Annotated[
        str, typer.Option("--artifact", help="CodeZip or ContainerImage")
    ] = "CodeZip",
    language: Annotated[str, typer.Option("--language", help="Python or TypeScript")] = "Python",
) -> None:
    """Add an agent."""
    with command_errors():
        validate_resource_name(name)
        if artifact == "CodeZip":
            runtime = CodeZipRuntime(code_location=code_location, entrypoint=entrypoint or "")
        elif artifact == "ContainerImage":
            runtime = ContainerImageRuntime(code_location=code_location, entrypoint=entrypoint)
        else:
            raise ConfigurationError(f"Unknown artifact '{artifact}' (use CodeZip or ContainerImage)")

        agent = AgentEnvSpec(name=name, runtime=runtime, target_language=TargetLanguage(language))
        with load_project(ConfigIO()) as graph:
            graph.add_owned_resource(ResourceKind.AGENT, agent)
        print_success(f"Added agent {name}")


@add_app.command("identity")
def add_identity(
    name: Annotated[str, typer.Option("--name", help="Credential provider name")],
    owner: Annotated[str | None, typer.Option("--owner", help="Owning agent")] = None,
    api_key: Annotated[
        str | None, typer.Option("--api-key", help="API key stored in agentcore/.env.local")
    ] = None,
    env_var: Annotated[
        str | None, typer.Option("--env-var", help="Env var holding the API key")
    ] = None,
) -> None:
    """Add an API key credential provider."""
    with command_errors():
        validate_resource_name(name)
        env_var = env_var or default_credential_env_var(name)
        config_io = ConfigIO()
        with load_project(config_io) as graph:
            graph.add_owned_resource(
                ResourceKind.IDENTITY,
                Credential(name=name, type=API_KEY_PROVIDER),
                owner_agent=owner,
                env_var_name=env_var,
            )
        if api_key:
            config_io.set_env_var(env_var, api_key)
        else:
            print_warning(f"Set {env_var} in agentcore/.env.local before deploying")
        print_success(f"Added identity {name}")


@add_app.command("memory")
def add_memory(
    name: Annotated[str, typer.Option("--name", help="Memory name")],
    strategies: Annotated[
        str, typer.Option("--strategies", help="Comma separated, e.g. SEMANTIC,SUMMARIZATION")
    ] = "",
    owner: Annotated[str | None, typer.Option("--owner", help="Owning agent")] = None,
    expiry: Annotated[int | None, typer.Option("--expiry", help="Event expiry in days")] = None,
    description: Annotated[str | None, typer.Option("--description")] = None,
) -> None:
    """Add a memory provider."""
    with command_errors():
        validate_resource_name(name)
        memory = MemoryProvider(
            name=name,
            strategies=parse_strategies(strategies),
            expiry=expiry,
            description=description,
        )
        with load_project(ConfigIO()) as graph:
            graph.add_owned_resource(ResourceKind.MEMORY, memory, owner_agent=owner)
        print_success(f"Added memory {name}")


@add_app.command("gateway")
def add_gateway(
    name: Annotated[str, typer.Option("--name", help="Gateway name")],
    description: Annotated[str | None, typer.Option("--description")] = None,
    authorizer_type: Annotated[
        str, typer.Option("--authorizer-type", help="NONE or CUSTOM_JWT")
    ] = "NONE",
) -> None:
    """Add a gateway."""
    with command_errors():
        validate_resource_name(name)
        gateway = Gateway(
            name=name,
            description=description,
            authorizer_type=GatewayAuthorizerType(authorizer_type),
        )
        with load_project(ConfigIO()) as graph:
            graph.add_owned_resource(ResourceKind.GATEWAY, gateway)
        print_success(f"Added gateway {name}")


@add_app.command("target")
def add_target(
    name: Annotated[str, typer.Option("--name", help="Target name")],
    region: Annotated[str, typer.Option("--region", help="AWS region, e.g. us-east-2")],
    account: Annotated[
        str | None, typer.Option("--account", help="AWS account ID (default: detect)")
    ] = None,
    profile: Annotated[str | None, typer.Option("--profile", help="AWS CLI profile name")] = None,
) -> None:
    """Add a deployment target."""
    with command_errors():
        validate_aws_region(region)
        config_io = ConfigIO()
        targets = config_io.read_aws_deployment_targets()
        if any(t.name == name for t in targets):
            raise ConfigurationError(f"Deployment target '{name}' already exists")

        if not account:
            account = detect_account(get_session(profile))
            if not account:
                raise ConfigurationError("Could not detect AWS account; pass --account")

        targets.append(AwsDeploymentTarget(name=name, region=region, account=account))
        config_io.write_aws_deployment_targets(targets)
        print_success(f"Added target {name} ({account}/{region})")


# bind


@bind_app.command("identity")
def bind_identity(
    agent: Annotated[str, typer.Option("--agent", help="Agent to grant access")],
    identity: Annotated[str, typer.Option("--name", help="Identity to bind")],
    env_var: Annotated[str | None, typer.Option("--env-var")] = None,
) -> None:
    """Let an agent use a credential provider owned by another agent."""
    with command_errors():
        with load_project(ConfigIO()) as graph:
            graph.bind_resource(ResourceKind.IDENTITY, agent, identity, env_var_name=env_var)
        print_success(f"Agent {agent} now has access to identity {identity}")


@bind_app.command("memory")
def bind_memory(
    agent: Annotated[str, typer.Option("--agent", help="Agent to grant access")],
    memory: Annotated[str, typer.Option("--name", help="Memory to bind")],
    access: Annotated[str, typer.Option("--access", help="read or readwrite")] = "read",
    env_var: Annotated[str | None, typer.Option("--env-var")] = None,
) -> None:
    """Let an agent read (or read and write) a memory owned by another agent."""
    with command_errors():
        with load_project(ConfigIO()) as graph:
            graph.bind_resource(
                ResourceKind.MEMORY, agent, memory, env_var_name=env_var, access=Access(access)
            )
        print_success(f"Agent {agent} now has {access} access to memory {memory}")


@bind_app.command("gateway")
def bind_gateway(
    agent: Annotated[str, typer.Option("--agent", help="Agent to grant access")],
    gateway: Annotated[str, typer.Option("--name", help="Gateway to bind")],
    env_var: Annotated[str | None, typer.Option("--env-var")] = None,
) -> None:
    """Let an agent call a gateway."""
    with command_errors():
        with load_project(ConfigIO()) as graph:
            graph.bind_resource(ResourceKind.GATEWAY, agent, gateway, env_var_name=env_var)
        print_success(f"Agent {agent} now has access to gateway {gateway}")


# remove


def _remove(kind: ResourceKind, name: str, force: bool) -> None:
    with command_errors():
        with load_project(ConfigIO()) as graph:
            result = graph.remove_resource(kind, name, force=force)
        for cascaded_kind, cascaded_name in result.cascaded:
            print_success(f"Removed owned {cascaded_kind.value} {cascaded_name}")
        if result.detached_agents:
            print_warning(f"Detached from: {', '.join(result.detached_agents)}")
        print_success(f"Removed {kind.value} {name}")


ForceOption = Annotated[
    bool, typer.Option("--force", help="Also detach the resource from agents that use it")
]


@remove_app.command("agent")
def remove_agent(
    name: Annotated[str, typer.Option("--name")], force: ForceOption = False
) -> None:
    """Remove an agent and the resources it owns."""
    _remove(ResourceKind.AGENT, name, force)


@remove_app.command("identity")
def remove_identity(
    name: Annotated[str, typer.Option("--name")], force: ForceOption = False
) -> None:
    """Remove a credential provider."""
    _remove(ResourceKind.IDENTITY, name, force)


@remove_app.command("memory")
def remove_memory(
    name: Annotated[str, typer.Option("--name")], force: ForceOption = False
) -> None:
    """Remove a memory provider."""
    _remove(ResourceKind.MEMORY, name, force)


@remove_app.command("gateway")
def remove_gateway(
    name: Annotated[str, typer.Option("--name")], force: ForceOption = False
) -> None:
    """Remove a gateway."""
    _remove(ResourceKind.GATEWAY, name, force)
