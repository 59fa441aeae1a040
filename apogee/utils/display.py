"""Rich console display helpers for apogee.

All human-facing output goes to stderr: stdout carries generated shell
code that the caller evaluates.
"""

from typing import Any, Iterable, Mapping

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# stderr console; stdout is reserved for shell code
err_console = Console(stderr=True)

# Used for `report` and other commands whose stdout is meant for humans
console = Console()

OUTCOME_STYLES = {
    "active": "green",
    "inactive": "dim",
    "gated": "yellow",
    "ineligible": "dim",
}


def print_error(message: str, title: str = "Error") -> None:
    """Display error message.

    Args:
        message: Error message to display
        title: Panel title
    """
    err_console.print(
        Panel(
            f"[red]{message}[/red]",
            title=f"[bold red]{title}[/bold red]",
            border_style="red",
        )
    )


def print_success(message: str) -> None:
    err_console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    err_console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    err_console.print(f"[blue]ℹ[/blue] {message}")


def key_value_table(title: str, rows: Mapping[str, Any]) -> Table:
    """Two-column table of display strings."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, str(value))
    return table


def module_table(results: Iterable[Any]) -> Table:
    """Activation outcome per module.

    Args:
        results: ModuleResult entries from a run
    """
    table = Table(title="Modules", show_header=True, header_style="bold cyan")
    table.add_column("Module", style="bold")
    table.add_column("Kind", style="dim")
    table.add_column("Outcome", width=12)
    table.add_column("Version", style="dim")
    table.add_column("Detail")

    for result in results:
        outcome = result.outcome.value
        style = OUTCOME_STYLES.get(outcome, "white")
        table.add_row(
            result.key,
            result.kind,
            f"[{style}]{outcome}[/{style}]",
            result.version,
            result.detail,
        )
    return table
