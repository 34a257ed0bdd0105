"""Record-timing command: append a script execution time to the history."""

from typing import Optional

import typer

from ..artifacts.timings import record_execution_time
from ..fs import LocalFileSystem
from . import app
from ._common import console, get_config


@app.command()
def record_timing(
    ctx: typer.Context,
    script: str = typer.Argument(..., help="Script id, e.g. test:core"),
    duration_ms: float = typer.Argument(..., help="Run duration in milliseconds", min=0),
    mode: Optional[str] = typer.Option(
        None,
        "--mode",
        "-m",
        help="Run mode; also recorded under <script>:<mode>",
    ),
):
    """Record one execution time for a script."""
    config = get_config(ctx)
    try:
        history = record_execution_time(
            LocalFileSystem(),
            config.layout.timing_history,
            script,
            duration_ms,
            mode=mode,
            limit=config.timing_history_limit,
        )
    except OSError as e:
        console.print(f"[red]Cannot write execution history:[/red] {e}")
        raise typer.Exit(1)

    runs = history.get(script, [])
    console.print(f"Recorded [yellow]{duration_ms:g} ms[/yellow] for [cyan]{script}[/cyan] ({len(runs)} runs kept)")
