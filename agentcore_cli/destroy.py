"""Destroy deployed AgentCore stacks and clean up local state."""

from typing import Annotated

import typer
from botocore.exceptions import BotoCoreError, ClientError

from .lib.aws import get_session
from .lib.commands import CommandError
from .lib.config import ConfigIO, ConfigurationError
from .lib.console import (
    console,
    print_error,
    print_final_success,
    print_header,
    print_step,
    print_success,
    print_warning,
)
from .lib.errors import CdkProjectNotFoundError, describe_error
from .lib.teardown import discover_deployed_targets, destroy_target

app = typer.Typer(help="Destroy deployed AgentCore stacks")


@app.command()
def destroy(
    target: Annotated[
        list[str] | None,
        typer.Option("--target", help="Only destroy these targets (repeatable)"),
    ] = None,
    profile: Annotated[
        str | None,
        typer.Option("--profile", help="AWS CLI profile name (for SSO users)"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """
    Destroy the project's deployed stacks.

    Targets are discovered from CloudFormation rather than trusted from
    agentcore/.cli/deployed-state.json. A target's entry is removed from the
    deployed state only after its stack was destroyed.
    """
    try:
        config_io = ConfigIO()
        session = get_session(profile)

        print_header("AgentCore Teardown", emoji="🗑️")

        print_step("1/2", "Discovering deployed stacks...")
        discovered = discover_deployed_targets(config_io, session)
        for name in discovered.unreachable_targets:
            print_warning(f"Could not check target '{name}', skipping")

        selected = [
            d for d in discovered.deployed_targets if not target or d.target.name in target
        ]
        if not selected:
            print_warning("No deployed stacks found")
            return

        for deployed in selected:
            console.print(
                f"   {deployed.target.name}: {deployed.stack.stack_name} "
                f"({deployed.stack.status}, {deployed.target.region})"
            )

        if not yes and not typer.confirm("Destroy these stacks?"):
            console.print("[yellow]Cleanup cancelled.[/yellow]")
            return

        print_step("2/2", "Destroying stacks...")
        failed = []
        for deployed in selected:
            try:
                destroy_target(deployed, config_io.cdk_project_dir, config_io, profile=profile)
                print_success(f"{deployed.stack.stack_name} destroyed")
            except CommandError as e:
                print_error(str(e))
                failed.append(deployed.target.name)

        if failed:
            print_error(f"Failed to destroy: {', '.join(failed)}")
            raise typer.Exit(1)

        print_final_success("Cleanup complete!")

    except (ConfigurationError, CdkProjectNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(1)
    except (ClientError, BotoCoreError) as e:
        print_error(describe_error(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cleanup cancelled.[/yellow]")
        raise typer.Exit(130)


def main() -> None:
    """Entry point for the destroy command."""
    app()


if __name__ == "__main__":
    main()
