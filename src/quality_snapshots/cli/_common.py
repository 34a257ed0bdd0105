"""Shared CLI helpers."""

import math
from typing import Optional

import typer
from rich.console import Console

from ..config import PipelineConfig

console = Console()


def get_config(ctx: typer.Context) -> PipelineConfig:
    """Configuration resolved by the root callback."""
    return ctx.obj["config"]


def score_style(score: float) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


def fmt_number(value: Optional[float], suffix: str = "") -> str:
    """One decimal place, or a dash when the value is missing."""
    if value is None or not math.isfinite(value):
        return "-"
    return f"{value:.1f}{suffix}"
