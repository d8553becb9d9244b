"""Command line entry point for managing AgentCore projects."""

import logging
from typing import Annotated

import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.table import Table

from . import deploy, destroy
from .lib.aws import get_session
from .lib.config import ConfigIO, ConfigurationError, init_project
from .lib.console import console, print_error, print_success, print_warning
from .lib.errors import describe_error
from .lib.identity import get_missing_credentials
from .lib.models import reset_project
from .lib.teardown import discover_deployed_targets
from .resources import add_app, bind_app, remove_app

app = typer.Typer(help="Manage AgentCore projects", no_args_is_help=True)
app.command("deploy")(deploy.deploy)
app.command("destroy")(destroy.destroy)
app.add_typer(add_app, name="add")
app.add_typer(bind_app, name="bind")
app.add_typer(remove_app, name="remove")


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show INFO logs")] = False,
) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def init(
    name: Annotated[str, typer.Option("--name", help="Project name")],
) -> None:
    """Create agentcore/agentcore.json and agentcore/aws-targets.json."""
    config_io = ConfigIO()
    try:
        init_project(config_io, name)
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)
    print_success(f"Created project {name} in {config_io.config_dir}")


@app.command()
def reset(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """
    Remove every agent and resource from the project.

    Deployment targets and deployed state are kept so deployed stacks can
    still be destroyed afterwards.
    """
    config_io = ConfigIO()
    try:
        project_spec = config_io.read_project_spec()
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not yes and not typer.confirm(f"Remove all resources from {project_spec.name}?"):
        console.print("[yellow]Reset cancelled.[/yellow]")
        return

    config_io.write_project_spec(reset_project(project_spec.name))
    print_success(f"Reset project {project_spec.name}")


@app.command()
def status(
    profile: Annotated[
        str | None,
        typer.Option("--profile", help="AWS CLI profile name (for SSO users)"),
    ] = None,
) -> None:
    """Show where the project is deployed and which secrets are missing."""
    config_io = ConfigIO()
    try:
        project_spec = config_io.read_project_spec()
        discovered = discover_deployed_targets(config_io, get_session(profile))
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(1)
    except (ClientError, BotoCoreError) as e:
        print_error(describe_error(e))
        raise typer.Exit(1)

    console.print(f"[bold]Project:[/bold] {project_spec.name}")
    console.print(
        f"   {len(project_spec.agents)} agents, {len(project_spec.credentials)} identities, "
        f"{len(project_spec.memories)} memories, {len(project_spec.gateways)} gateways"
    )

    if discovered.deployed_targets:
        table = Table(title="Deployed targets")
        table.add_column("Target")
        table.add_column("Region")
        table.add_column("Stack")
        table.add_column("Status")
        for deployed in discovered.deployed_targets:
            table.add_row(
                deployed.target.name,
                deployed.target.region,
                deployed.stack.stack_name,
                deployed.stack.status,
            )
        console.print(table)
    else:
        console.print("[dim]Not deployed[/dim]")

    for name in discovered.unreachable_targets:
        print_warning(f"Could not check target '{name}'")

    for missing in get_missing_credentials(project_spec, config_io):
        print_warning(f"{missing.provider_name}: {missing.env_var_name} is not set")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
