"""Snapshots command: list the merged snapshot history."""

import json

import typer
from rich.table import Table

from ..health import coverage_composite, primary_performance_score
from ..snapshot import SnapshotStore
from . import app
from ._common import console, fmt_number, get_config, score_style


@app.command()
def snapshots(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of snapshots to list",
        min=1,
        max=1000,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List snapshots newest first, structured and report-based alike.

    [bold cyan]Examples:[/bold cyan]

      quality-snapshots snapshots

      quality-snapshots snapshots --limit 5 --json
    """
    store = SnapshotStore(get_config(ctx))
    history = store.list()[:limit]

    if json_output:
        print(json.dumps([s.to_dict() for s in history], indent=2))
        return

    if not history:
        console.print("[yellow]No snapshots found.[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Quality Snapshots", show_lines=False, pad_edge=True)
    table.add_column("Timestamp", style="green")
    table.add_column("Commit", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Health", justify="right")
    table.add_column("Confidence")
    table.add_column("Tests", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_column("Perf", justify="right")
    table.add_column("Bundle KB", justify="right")

    for s in history:
        tests = s.metrics.tests
        style = score_style(s.health_score)
        ts = s.timestamp.replace("T", " ")
        if "." in ts:
            ts = ts[: ts.index(".")]
        table.add_row(
            ts,
            s.commit_hash,
            s.source,
            f"[{style}]{s.health_score}[/{style}]",
            s.confidence_level,
            f"{tests.passed}/{tests.total}",
            fmt_number(coverage_composite(s.metrics.coverage, s.data_quality.coverage_complete), "%"),
            fmt_number(primary_performance_score(s.metrics.performance)),
            fmt_number(s.metrics.performance.bundle_size),
        )

    console.print()
    console.print(table)
