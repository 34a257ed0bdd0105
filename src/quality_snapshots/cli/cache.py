"""Dashboard cache commands."""

import json

import typer
from rich.table import Table

from ..dashboard import DashboardCache, load_dashboard
from . import app
from ._common import console, get_config

_AVERAGE_LABELS = {
    "coverage": ("Coverage", "%"),
    "performance": ("Performance", ""),
    "bundleSize": ("Bundle size", " KB"),
    "testsPassRate": ("Test pass rate", "%"),
    "lcp": ("LCP", " ms"),
    "cls": ("CLS", ""),
    "tbt": ("TBT", " ms"),
}


@app.command()
def refresh(
    ctx: typer.Context,
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Print nothing on success",
    ),
):
    """Rebuild the dashboard cache from all snapshots and artifacts."""
    cache = DashboardCache(get_config(ctx))
    try:
        payload = cache.write()
    except OSError as e:
        console.print(f"[red]Cannot write dashboard cache:[/red] {e}")
        raise typer.Exit(1)

    if not quiet:
        console.print(
            f"[green]Dashboard cache written[/green] "
            f"({payload['summary']['count']} snapshots): [blue]{cache.path}[/blue]"
        )


@app.command()
def summary(
    ctx: typer.Context,
    refresh_cache: bool = typer.Option(
        False,
        "--refresh",
        help="Rebuild the cache before showing it",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output the summary block as JSON",
    ),
):
    """
    Show the dashboard summary: averages, security status and script timings.

    Served from the cache file; the cache is rebuilt when missing or invalid.
    """
    payload = load_dashboard(get_config(ctx), refresh=refresh_cache)
    data = payload["summary"]

    if json_output:
        print(json.dumps(data, indent=2))
        return

    console.print(f"[bold cyan]Dashboard summary[/bold cyan] (generated {payload.get('generatedAt', '-')})")
    console.print(f"Snapshots: [yellow]{data.get('count', 0)}[/yellow], latest {data.get('latestTimestamp') or '-'}")
    console.print()

    table = Table(title="Averages", show_header=False, pad_edge=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key, (label, unit) in _AVERAGE_LABELS.items():
        table.add_row(label, f"{data.get('averages', {}).get(key, 0)}{unit}")
    console.print(table)

    security = data.get("security")
    if security:
        status = "[green]passed[/green]" if security.get("passed") else "[red]failed[/red]"
        console.print(
            f"Security: {status}, {security.get('total', 0)} findings "
            f"({security.get('critical', 0)} critical, {security.get('high', 0)} high, "
            f"{security.get('medium', 0)} medium)"
        )
    else:
        console.print("Security: [dim]no scan result[/dim]")

    scripts = data.get("scripts") or []
    if scripts:
        timings = Table(title="Script timings", pad_edge=True)
        timings.add_column("Script", style="cyan")
        timings.add_column("Runs", justify="right")
        timings.add_column("Avg s", justify="right")
        timings.add_column("Last s", justify="right")
        for script in scripts:
            timings.add_row(
                script["id"], str(script["runs"]), str(script["avgSeconds"]), str(script["lastSeconds"])
            )
        console.print(timings)
