"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="quality-snapshots",
    help="Quality Snapshots - historical quality records and dashboard cache",
    add_completion=False,
    rich_markup_mode="rich",
)


# Import subcommands to register them
from .main import main as _main_callback  # noqa: F401, E402
from .generate import generate as _generate  # noqa: F401, E402
from .snapshots import snapshots as _snapshots  # noqa: F401, E402
from .cache import refresh as _refresh, summary as _summary  # noqa: F401, E402
from .report import report as _report  # noqa: F401, E402
from .timing import record_timing as _record_timing  # noqa: F401, E402
from .settings import show_config as _show_config  # noqa: F401, E402
