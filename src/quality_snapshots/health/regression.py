"""Differences between two snapshots. Positive values are improvements."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from ..snapshot.models import QualityMetrics, Snapshot
from .composite import primary_performance_score


@dataclass(frozen=True)
class QualityDelta:
    score: float = 0
    tests_passed: int = 0
    tests_failed: int = 0
    coverage_lines: float = 0
    coverage_branches: float = 0
    coverage_functions: float = 0
    performance: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "tests": {"passed": self.tests_passed, "failed": self.tests_failed},
            "coverage": {
                "lines": self.coverage_lines,
                "branches": self.coverage_branches,
                "functions": self.coverage_functions,
            },
            "performance": {"score": self.performance},
        }


def _perf_or_zero(metrics: QualityMetrics) -> float:
    score = primary_performance_score(metrics.performance)
    return score if math.isfinite(score) else 0


def metrics_delta(current: QualityMetrics, previous: QualityMetrics) -> QualityDelta:
    """Per-metric differences, without the health score."""
    return QualityDelta(
        tests_passed=current.tests.passed - previous.tests.passed,
        tests_failed=current.tests.failed - previous.tests.failed,
        coverage_lines=current.coverage.lines - previous.coverage.lines,
        coverage_branches=current.coverage.branches - previous.coverage.branches,
        coverage_functions=current.coverage.functions - previous.coverage.functions,
        performance=_perf_or_zero(current) - _perf_or_zero(previous),
    )


def calculate_delta(current: Snapshot, previous: Snapshot) -> QualityDelta:
    delta = metrics_delta(current.metrics, previous.metrics)
    return QualityDelta(
        score=current.health_score - previous.health_score,
        tests_passed=delta.tests_passed,
        tests_failed=delta.tests_failed,
        coverage_lines=delta.coverage_lines,
        coverage_branches=delta.coverage_branches,
        coverage_functions=delta.coverage_functions,
        performance=delta.performance,
    )
