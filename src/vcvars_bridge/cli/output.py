"""Rich output helpers for the CLI.

Everything here writes to stderr; stdout is reserved for the eval-able
transition script.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

__all__ = [
    "console",
    "print_cli_error",
    "print_status",
]

console = Console(stderr=True)


def print_cli_error(message: str, hint: str | None = None) -> None:
    """Print an error with an optional hint."""
    console.print(f"[red]✗[/red] {message}")
    if hint:
        console.print(f"  [dim]Hint: {hint}[/dim]")


def print_status(rows: list[tuple[str, str]], title: str = "vcvars-bridge") -> None:
    """Print ``(field, value)`` rows as a two-column table."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Field", style="cyan")
    table.add_column("Value", no_wrap=False)
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)
