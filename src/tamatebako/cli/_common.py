"""Shared CLI helpers."""

from contextlib import contextmanager
from typing import Iterator

import typer
from rich.console import Console
from rich.markup import escape

from ..config import AppConfig, load_config
from ..exceptions import TamatebakoError
from ..storage import HistoryStore

console = Console()


def resolve_config(ctx: typer.Context) -> AppConfig:
    """Load config from the --config option, exiting with 1 on error."""
    config_file = (ctx.obj or {}).get("config_file")
    try:
        return load_config(config_file=config_file)
    except TamatebakoError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


@contextmanager
def open_store(config: AppConfig) -> Iterator[HistoryStore]:
    """Open the history store under the workspace root, exiting with 1 on error."""
    store = HistoryStore(config.database_path)
    try:
        store.connect()
    except TamatebakoError as e:
        console.print(f"[red]Cannot open history:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    try:
        yield store
    finally:
        store.close()


def format_timestamp(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")
