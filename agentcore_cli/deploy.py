"""Deploy an AgentCore project to a deployment target."""

from typing import Annotated

import typer
from botocore.exceptions import BotoCoreError, ClientError

from .lib.aws import find_stack, get_session, get_stack_name, validate_aws_credentials
from .lib.commands import CdkToolkit, CommandError
from .lib.config import ConfigIO, ConfigurationError, DeployConfig, get_deploy_config, load_project
from .lib.console import (
    console,
    print_config,
    print_error,
    print_final_success,
    print_header,
    print_provider_results,
    print_step,
    print_success,
    print_warning,
)
from .lib.credentials import SecureCredentials
from .lib.errors import AwsCredentialsError, KmsSetupError, describe_error
from .lib.identity import has_owned_identity_api_providers, setup_api_key_providers
from .lib.models import ProjectSpec
from .lib.teardown import record_deployed_target

app = typer.Typer(help="Deploy an AgentCore project to AWS")


def parse_runtime_credentials(values: list[str] | None) -> SecureCredentials | None:
    """Parse repeated ENV_VAR=value options into runtime-only credentials."""
    if not values:
        return None
    parsed = {}
    for value in values:
        key, sep, secret = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(
                "Each --credential must be ENV_VAR=value with a non-empty ENV_VAR",
                param_hint="--credential",
            )
        parsed[key] = secret
    return SecureCredentials.from_env_vars(parsed)


def step_1_check_credentials(config: DeployConfig) -> None:
    """Fail early when AWS credentials are unusable."""
    print_step("1/4", "Checking AWS credentials...")
    session = get_session(config.aws_profile)
    account = validate_aws_credentials(session)
    if config.target.account and account != config.target.account:
        print_warning(
            f"Credentials belong to account {account}, target '{config.target.name}' "
            f"expects {config.target.account}"
        )
    print_success(f"Using account {account}")


def step_2_setup_identity(
    config: DeployConfig,
    config_io: ConfigIO,
    project_spec: ProjectSpec,
    runtime_credentials: SecureCredentials | None,
) -> None:
    """Create missing API key credential providers in AgentCore Identity."""
    print_step("2/4", "Setting up identity providers...")

    wants_kms = config.enable_kms or bool(project_spec.identity_kms_key_arn)
    if not has_owned_identity_api_providers(project_spec) and not wants_kms:
        print_success("No identity providers to set up")
        return

    result = setup_api_key_providers(
        project_spec,
        config_io,
        get_session(config.aws_profile),
        config.aws_region,
        runtime_credentials=runtime_credentials,
        enable_kms_encryption=config.enable_kms,
    )
    print_provider_results(result.results)

    if result.kms_key_arn and result.kms_key_arn != project_spec.identity_kms_key_arn:
        with load_project(config_io) as graph:
            graph.spec.identity_kms_key_arn = result.kms_key_arn
        print_success(f"Token vault encrypted with {result.kms_key_arn}")

    for skipped in result.skipped:
        print_warning(f"{skipped.provider_name}: {skipped.error}")

    if result.has_errors:
        print_error("Identity provider setup failed")
        raise typer.Exit(1)


def step_3_deploy_stack(config: DeployConfig, config_io: ConfigIO, stack_name: str) -> None:
    print_step("3/4", f"Deploying {stack_name} (this may take several minutes)...")

    if not config_io.cdk_project_dir.exists():
        print_error(f"CDK project not found at {config_io.cdk_project_dir}")
        raise typer.Exit(1)

    toolkit = CdkToolkit(config_io.cdk_project_dir, profile=config.aws_profile)
    toolkit.initialize()
    toolkit.deploy(stack_name)
    print_success("Stack deployed")


def step_4_record_state(config: DeployConfig, config_io: ConfigIO, project_name: str) -> None:
    """Record the deployment only once CloudFormation confirms the stack."""
    print_step("4/4", "Confirming deployment...")

    session = get_session(config.aws_profile)
    stack = find_stack(session, config.aws_region, project_name, config.target.name)
    if stack is None:
        print_error("Deployed stack not found in CloudFormation")
        raise typer.Exit(1)

    record_deployed_target(config_io, config.target.name, stack)
    print_success(f"{stack.stack_name} is {stack.status}")


@app.command()
def deploy(
    target: Annotated[
        str | None,
        typer.Option("--target", help="Deployment target name (default: the only target)"),
    ] = None,
    profile: Annotated[
        str | None,
        typer.Option("--profile", help="AWS CLI profile name (for SSO users)"),
    ] = None,
    kms: Annotated[
        bool,
        typer.Option("--kms", help="Encrypt the identity token vault with a customer-managed KMS key"),
    ] = False,
    credential: Annotated[
        list[str] | None,
        typer.Option(
            "--credential",
            help="ENV_VAR=value secret for this run only (overrides agentcore/.env.local)",
        ),
    ] = None,
) -> None:
    """
    Deploy the project to a deployment target.

    This command performs a 4-step deployment:

    1. Check AWS credentials

    2. Create API key credential providers (and the token vault key with --kms)

    3. Deploy the CDK stack

    4. Record the confirmed deployment in agentcore/.cli/deployed-state.json
    """
    try:
        runtime_credentials = parse_runtime_credentials(credential)
        config_io = ConfigIO()
        config = get_deploy_config(config_io, target, profile, enable_kms=kms)
        project_spec = config_io.read_project_spec()
        stack_name = get_stack_name(project_spec.name, config.target.name)

        print_header("AgentCore Deployment")
        print_config(
            project=project_spec.name,
            target=config.target.name,
            region=config.aws_region,
            profile=config.aws_profile,
            kms=kms or bool(project_spec.identity_kms_key_arn),
        )

        step_1_check_credentials(config)
        step_2_setup_identity(config, config_io, project_spec, runtime_credentials)
        step_3_deploy_stack(config, config_io, stack_name)
        step_4_record_state(config, config_io, project_spec.name)

        print_final_success("Deployment successful!")

    except (ConfigurationError, CommandError, AwsCredentialsError, KmsSetupError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    except (ClientError, BotoCoreError) as e:
        print_error(describe_error(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Deployment cancelled.[/yellow]")
        raise typer.Exit(130)


def main() -> None:
    """Entry point for the deploy command."""
    app()


if __name__ == "__main__":
    main()
