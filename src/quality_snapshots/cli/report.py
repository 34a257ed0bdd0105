"""Report command: print a legacy report's raw text."""

import typer

from ..snapshot import SnapshotStore
from . import app
from ._common import console, get_config


@app.command()
def report(
    ctx: typer.Context,
    filename: str = typer.Argument(..., help="Report file name, e.g. audit_report_1718000000000.md"),
):
    """Print the raw text of a legacy audit or quality report."""
    content = SnapshotStore(get_config(ctx)).get_report_content(filename)
    if content is None:
        console.print(f"[yellow]Report not found:[/yellow] {filename}")
        raise typer.Exit(1)
    typer.echo(content)
