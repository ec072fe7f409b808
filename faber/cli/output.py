"""Rich console output utilities for the faber CLI."""

import json
import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console()
error_console = Console(stderr=True)


def setup_logging(level: str | int = logging.WARNING) -> None:
    """Route log records through rich on stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def print_key_value(key: str, value: Any, key_style: str = "bold") -> None:
    """Print a key-value pair."""
    console.print(f"[{key_style}]{key}:[/{key_style}] {value}")


def print_table(title: str, columns: list[str], rows: list[list[str]]) -> None:
    """Print rows under the given column headings."""
    table = Table(title=title)
    for i, column in enumerate(columns):
        table.add_column(column, style="cyan" if i == 0 else None)
    for row in rows:
        table.add_row(*row)
    console.print(table)
