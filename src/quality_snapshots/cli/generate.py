"""Generate command: capture and save a snapshot of the current commit."""

import typer

from ..dashboard import DashboardCache
from ..exceptions import SnapshotWriteError
from ..snapshot.capture import generate_snapshot
from . import app
from ._common import console, get_config, score_style


@app.command()
def generate(
    ctx: typer.Context,
    run_tests: bool = typer.Option(
        False,
        "--run-tests",
        help="Run the configured test command before collecting results",
    ),
    refresh_cache: bool = typer.Option(
        True,
        "--refresh-cache/--no-refresh-cache",
        help="Rebuild the dashboard cache after saving",
    ),
):
    """
    Capture a structured snapshot for the current commit.

    Reads the test report, coverage summary, performance audits and build
    output, scores them against the previous snapshot and saves the result.

    [bold cyan]Examples:[/bold cyan]

      quality-snapshots generate

      quality-snapshots generate --run-tests --no-refresh-cache
    """
    config = get_config(ctx)

    try:
        result = generate_snapshot(config, execute_tests=run_tests)
    except SnapshotWriteError as e:
        console.print(f"[red]Failed to generate snapshot:[/red] {e}")
        raise typer.Exit(1)

    snapshot = result.snapshot
    style = score_style(snapshot.health_score)
    console.print(f"[green]Snapshot saved[/green] for commit [cyan]{snapshot.commit_hash}[/cyan]: {result.path.name}")
    console.print(
        f"Score: [{style}]{snapshot.health_score}[/{style}] "
        f"({snapshot.confidence_level} confidence)"
    )
    if result.health.explanations:
        console.print("[yellow]Explanations:[/yellow]")
        for explanation in result.health.explanations:
            console.print(f"  - {explanation}", markup=False)

    if refresh_cache:
        try:
            DashboardCache(config).write()
        except OSError as e:
            console.print(f"[yellow]Dashboard cache not updated:[/yellow] {e}")
