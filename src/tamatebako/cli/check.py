"""Check command -- collect new versions for every configured project."""

import typer
from rich.markup import escape
from rich.table import Table

from ..collector import Collector
from ..exceptions import PersistenceError
from . import app
from ._common import console, open_store, resolve_config


@app.command()
def check(ctx: typer.Context):
    """
    Check and store version history information.

    Syncs each project's git workspace and queries its GitHub releases,
    then records any version not seen before.

    [bold cyan]Examples:[/bold cyan]

      tamatebako check

      tamatebako --log-level debug check
    """
    config = resolve_config(ctx)
    config.rootdir.mkdir(parents=True, exist_ok=True)

    with open_store(config) as store:
        collector = Collector(config, store)
        try:
            results = collector.collect_all()
        except PersistenceError as e:
            console.print(f"[red]History store failure:[/red] {escape(str(e))}")
            raise typer.Exit(1)

    if not results:
        console.print("[yellow]No projects with a source configured.[/yellow]")
        return

    table = Table(title="New versions", show_lines=False, pad_edge=True)
    table.add_column("Project", style="bold")
    table.add_column("New", justify="right", style="green")
    for name, count in results.items():
        table.add_row(escape(name), str(count))
    console.print(table)
