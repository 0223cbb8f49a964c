"""CLI module."""

from cadence.cli.app import app

__all__ = ["app"]
