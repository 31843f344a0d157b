"""List command -- latest version of each project."""

import json
from enum import Enum

import typer

from . import app
from ._common import console, format_timestamp, open_store, resolve_config


class SortKey(str, Enum):
    name = "name"
    version = "version"
    datetime = "datetime"


_ORDER_KEYS = {
    SortKey.name: "project_name",
    SortKey.version: "version",
    SortKey.datetime: "occurred_at",
}


@app.command("list")
def list_versions(
    ctx: typer.Context,
    sort: SortKey = typer.Option(SortKey.name, "--sort", "-s", help="sort key", case_sensitive=False),
    reverse: bool = typer.Option(False, "--reverse", "-r", help="reverse the order of the sort item"),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    Output the latest version of each project.

    [bold cyan]Examples:[/bold cyan]

      tamatebako list

      tamatebako list --sort datetime --reverse
    """
    config = resolve_config(ctx)
    with open_store(config) as store:
        rows = store.latest_per_project(_ORDER_KEYS[sort], descending=reverse)

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "project_name": r.project_name,
                        "channel": r.channel,
                        "version": r.version,
                        "occurred_at": format_timestamp(r.occurred_at),
                        "url": r.url,
                    }
                    for r in rows
                ],
                indent=2,
            )
        )
        return

    if not rows:
        console.print("[yellow]No versions recorded yet.[/yellow] Run [bold]tamatebako check[/bold] first.")
        return

    width = max(len(r.project_name) for r in rows)
    for r in rows:
        console.print(
            f"{r.project_name:>{width}}: {r.version:<10} ({format_timestamp(r.occurred_at)})",
            highlight=False,
            markup=False,
        )
