"""Root callback: global options, configuration and logging."""

from pathlib import Path
from typing import Optional

import typer

from ..config import load_config
from ..exceptions import ConfigurationError
from ..logging_config import setup_logging
from . import app
from ._common import console


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    root: Optional[Path] = typer.Option(
        None,
        "-C",
        "--root",
        help="Project root holding the reports directory (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """
    Collect, score and cache the quality history of a web project.

    [bold cyan]Examples:[/bold cyan]

      quality-snapshots snapshots

      quality-snapshots -C /path/to/project refresh

      quality-snapshots generate --run-tests
    """
    if version:
        from .. import __version__

        console.print(f"[bold cyan]Quality Snapshots[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    try:
        settings = load_config(config_file=config, root_dir=str(root) if root else None)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(
        verbose=verbose or settings.debug,
        quiet=quiet,
        level_name=settings.effective_log_level,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = settings

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)
