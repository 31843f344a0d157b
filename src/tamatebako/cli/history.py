"""History command -- every recorded version, newest first."""

import json
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from . import app
from ._common import console, format_timestamp, open_store, resolve_config


@app.command()
def history(
    ctx: typer.Context,
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Only show this project"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum number of rows", min=1, max=10000),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    List recorded versions, most recent first.

    [bold cyan]Examples:[/bold cyan]

      tamatebako history

      tamatebako history --project rust --limit 10
    """
    config = resolve_config(ctx)
    with open_store(config) as store:
        rows = store.all(project_name=project, limit=limit)

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "id": r.id,
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
        console.print("[yellow]No versions recorded yet.[/yellow]")
        return

    table = Table(title="Version History", show_lines=False, pad_edge=True)
    table.add_column("Date", style="green")
    table.add_column("Project", style="bold")
    table.add_column("Channel", style="dim")
    table.add_column("Version", style="cyan")
    table.add_column("URL", style="dim")
    for r in rows:
        table.add_row(
            format_timestamp(r.occurred_at),
            escape(r.project_name),
            escape(r.channel or "-"),
            escape(r.version),
            escape(r.url or ""),
        )
    console.print()
    console.print(table)
    console.print()
