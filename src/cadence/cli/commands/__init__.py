"""CLI command modules."""

from cadence.cli.commands import schedule

__all__ = ["schedule"]
