"""Colored console output utilities using Rich."""

from rich.console import Console
from rich.table import Table

console = Console()

STATUS_STYLES = {
    "created": "green",
    "exists": "blue",
    "skipped": "yellow",
    "error": "red",
}


def print_step(step: str, message: str) -> None:
    """Print a step indicator: [1/4] Setting up credentials..."""
    console.print(f"\n[blue][{step}][/blue] {message}")


def print_success(message: str) -> None:
    """Print success message with green checkmark."""
    console.print(f"   [green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Print warning message with yellow indicator."""
    console.print(f"   [yellow]![/yellow] {message}")


def print_error(message: str) -> None:
    """Print error message with red X."""
    console.print(f"   [red]✗[/red] {message}")


def print_header(title: str, emoji: str = "🚀") -> None:
    """Print command header."""
    console.print(f"[blue]{emoji} {title}[/blue]")
    console.print("=" * 30)


def print_config(
    project: str,
    target: str,
    region: str,
    profile: str | None = None,
    kms: bool = False,
) -> None:
    """Print configuration summary."""
    console.print("[blue]📋 Configuration:[/blue]")
    console.print(f"   Project: {project}")
    console.print(f"   Target:  {target}")
    console.print(f"   Region:  {region}")
    if kms:
        console.print("   KMS:     customer-managed token vault key")
    if profile:
        console.print(f"   Profile: {profile}")


def print_provider_results(results) -> None:
    """Render per-provider provisioning outcomes as a table."""
    if not results:
        print_success("No API key credential providers to set up")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Agent")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Detail")
    for result in results:
        style = STATUS_STYLES.get(result.status.value, "white")
        table.add_row(
            result.agent_name,
            result.provider_name,
            f"[{style}]{result.status.value}[/{style}]",
            result.error or "",
        )
    console.print(table)


def print_final_success(message: str = "Deployment successful!") -> None:
    """Print final success message."""
    console.print()
    console.print(f"[green]✅ {message}[/green]")
