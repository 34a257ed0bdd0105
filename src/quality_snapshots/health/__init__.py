"""Health scoring of snapshots."""

from .composite import coverage_composite, primary_performance_score
from .regression import QualityDelta, calculate_delta, metrics_delta
from .score import (
    LEGACY_CONFIDENCE,
    HealthScoreResult,
    calculate_health_score,
    calculate_legacy_health_score,
)

__all__ = [
    "coverage_composite",
    "primary_performance_score",
    "QualityDelta",
    "calculate_delta",
    "metrics_delta",
    "LEGACY_CONFIDENCE",
    "HealthScoreResult",
    "calculate_health_score",
    "calculate_legacy_health_score",
]
