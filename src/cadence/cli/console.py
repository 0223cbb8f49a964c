"""Shared console output helpers for CLI commands."""

from __future__ import annotations

from datetime import UTC, datetime

import typer
from rich.console import Console
from rich.table import Table

console = Console()


def error(msg: str) -> None:
    console.print(f"[red]{msg}[/red]")


def warning(msg: str) -> None:
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def dim(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")


def create_table(*columns: str | tuple[str, str], title: str | None = None) -> Table:
    """Build a table from column names or (name, style) pairs."""
    table = Table(title=title)
    for column in columns:
        if isinstance(column, tuple):
            name, style = column
            table.add_column(name, style=style)
        else:
            table.add_column(column)
    return table


def confirm_or_cancel(prompt: str, force: bool) -> bool:
    """Ask for confirmation unless ``force``; prints "Cancelled" on decline."""
    if force or typer.confirm(prompt):
        return True
    dim("Cancelled")
    return False


def format_timestamp(epoch_ms: int | None) -> str:
    """Epoch ms as an ISO 8601 UTC string, or ``n/a``."""
    if epoch_ms is None:
        return "n/a"
    return datetime.fromtimestamp(epoch_ms / 1000, UTC).isoformat()


def format_countdown(target_ms: int | None, now_ms: int) -> str:
    """Rich-markup countdown such as ``in 5m`` or ``in 2d 3h``."""
    if target_ms is None:
        return "[dim]?[/dim]"
    if target_ms <= now_ms:
        return "[green]now[/green]"

    seconds = (target_ms - now_ms) // 1000
    if seconds < 60:
        return f"in {seconds}s"
    minutes, _ = divmod(seconds, 60)
    if minutes < 60:
        return f"in {minutes}m"
    hours, minutes = divmod(minutes, 60)
    if hours < 24:
        return f"in {hours}h {minutes}m" if minutes else f"in {hours}h"
    days, hours = divmod(hours, 24)
    return f"in {days}d {hours}h" if hours else f"in {days}d"
