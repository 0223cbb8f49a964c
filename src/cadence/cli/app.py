"""Main CLI application."""

from pathlib import Path
from typing import Annotated

import typer

from cadence.cli.commands import schedule

app = typer.Typer(
    name="cadence",
    help="Cadence - schedule execution core",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            "-r",
            help="Directory holding schedules/ (overrides config)",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Manage and run filesystem-backed schedules."""
    ctx.obj = {"root": root, "config": config, "verbose": verbose}


schedule.register(app)


if __name__ == "__main__":
    app()
