"""Shared Rich console for chart-intake CLI output."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table

# Global console instance (initialized in CLI)
_console: Console | None = None


def get_console() -> Console:
    """Get the global Rich console instance, creating a stdout console on first use."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global Rich console instance."""
    global _console
    _console = console


def print(*args: Any, **kwargs: Any) -> None:
    """Print to the global console."""
    get_console().print(*args, **kwargs)


def print_json(data: Any) -> None:
    """Print data as JSON without Rich markup or wrapping."""
    get_console().print_json(data=data)


def print_error(message: str) -> None:
    get_console().print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    get_console().print(f"[yellow]Warning: {message}[/yellow]")


def print_success(message: str) -> None:
    get_console().print(f"[green]{message}[/green]")


def make_table(title: str, columns: list[str]) -> Table:
    """Create a table with the given column headers."""
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    return table
