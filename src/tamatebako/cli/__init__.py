"""CLI entry point. Registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from .. import __version__
from ..exceptions import TamatebakoError
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="tamatebako",
    help="tamatebako - version checker for OSS projects",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"tamatebako {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    ctx: typer.Context,
    log_level: str = typer.Option("info", "--log-level", help="logging level: debug, info, warn, error"),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="config file (default: ~/.config/tamatebako/config.toml)",
        dir_okay=False,
    ),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="also append logs to this file"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="show version and exit"
    ),
):
    """Track tags and releases of OSS projects in a local version history."""
    try:
        setup_logging(log_level, str(log_file) if log_file else None)
    except TamatebakoError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    ctx.obj = {"config_file": config}


# Import subcommands to register them
from .check import check as _check  # noqa: F401, E402
from .history import history as _history  # noqa: F401, E402
from .latest import list_versions as _list_versions  # noqa: F401, E402


def main() -> None:
    app()
