"""Show the resolved configuration."""

import json

import typer
from rich.table import Table

from . import app
from ._common import console, get_config


@app.command("config")
def show_config(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the settings as JSON",
    ),
):
    """
    Show the configuration after merging files, environment and flags.

    The serving switches (persistent, auto_rebuild) are listed here for the
    dashboard server that reads them.
    """
    config = get_config(ctx)
    data = config.to_dict()

    if json_output:
        print(json.dumps(data, indent=2))
        return

    table = Table(title="Configuration", pad_edge=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    weights = data.pop("weights")
    for key, value in data.items():
        table.add_row(key, "-" if value is None else str(value))
    for key, value in weights.items():
        table.add_row(f"weights.{key}", f"{value:.2f}")
    console.print(table)
    console.print(f"Reports: [blue]{config.layout.reports}[/blue]")
