"""Health score calculation.

Two formulas are in use and are kept separate on purpose:

* ``calculate_health_score`` scores structured snapshots from four
  weighted categories (performance, tests, coverage, stability).
* ``calculate_legacy_health_score`` scores snapshots rebuilt from legacy
  free-text reports, which only expose a step pass rate and whatever
  performance audit was matched.

The same metrics therefore score differently depending on the source
of the snapshot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..config import HealthWeights
from ..snapshot.models import (
    CoverageMetrics,
    PerformanceMetrics,
    QualityMetrics,
    Snapshot,
    StabilityMetrics,
    TestMetrics,
)
from ..timestamps import round_half_up
from .composite import coverage_composite, primary_performance_score
from .regression import metrics_delta

LEGACY_CONFIDENCE = "high"

COVERAGE_TARGET = 80
STABILITY_TARGET = 99
REGRESSION_PENALTY = 5  # per listed performance regression
COVERAGE_DROP_PENALTY = 5
NEW_FAILURE_PENALTY = 10


def clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


@dataclass
class HealthScoreResult:
    """Overall score with the per-category breakdown behind it.

    ``breakdown["performance"]`` is None when no performance score was
    available; that category's weight was spread over the others.
    """

    score: int
    confidence: str
    breakdown: dict[str, Optional[int]] = field(default_factory=dict)
    explanations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "confidence": self.confidence,
            "breakdown": dict(self.breakdown),
            "explanations": list(self.explanations),
        }


def _confidence(measured: int) -> str:
    if measured >= 4:
        return "high"
    if measured <= 2:
        return "low"
    return "medium"


def calculate_health_score(
    performance: PerformanceMetrics,
    tests: TestMetrics,
    coverage: CoverageMetrics,
    stability: StabilityMetrics,
    previous: Optional[Snapshot] = None,
    weights: Optional[HealthWeights] = None,
    borrowed: Iterable[str] = (),
) -> HealthScoreResult:
    """Score a structured snapshot's metrics on a 0-100 scale.

    Args:
        performance: Score sets and regressions; the primary score is the
            first positive one among feed, home and base.
        tests: Pass rate drives the score (no tests counts as 100);
            ``flaky_rate`` costs 200 points per unit.
        coverage: Scored through the coverage composite.
        stability: Uptime percentage.
        previous: Prior snapshot used as regression baseline.
        weights: Category weights, defaults to 40/30/20/10.
        borrowed: Categories whose data was copied from another snapshot;
            they do not count as measured for the confidence level.
    """
    weights = weights or HealthWeights()
    borrowed = set(borrowed)
    explanations: list[str] = []

    primary = primary_performance_score(performance)
    performance_score: Optional[float] = None
    if math.isfinite(primary):
        performance_score = clamp(primary - len(performance.regressions) * REGRESSION_PENALTY)
    if performance.regressions:
        explanations.append(f"Performance regression detected ({len(performance.regressions)} issues)")

    pass_rate = 100.0 if tests.total == 0 else tests.passed / tests.total * 100
    flaky_rate = tests.flaky_rate or 0
    tests_score = clamp(pass_rate - flaky_rate * 200)
    if tests.failed > 0:
        explanations.append(f"{tests.failed} test(s) failed")
    if flaky_rate > 0:
        explanations.append(f"Flaky tests rate at {flaky_rate * 100:.1f}%")

    coverage_score = clamp(coverage_composite(coverage))
    if coverage_score < COVERAGE_TARGET:
        explanations.append(f"Low code coverage: {round_half_up(coverage_score)}% (target > {COVERAGE_TARGET}%)")

    stability_score = clamp(stability.uptime)
    if stability_score < STABILITY_TARGET:
        explanations.append(f"System stability below target: {stability_score:g}%")

    penalty = 0
    if previous is not None:
        current = QualityMetrics(tests=tests, coverage=coverage, performance=performance, stability=stability)
        delta = metrics_delta(current, previous.metrics)
        if delta.coverage_lines < -1:
            penalty += COVERAGE_DROP_PENALTY
            explanations.append(f"Coverage dropped by {abs(delta.coverage_lines):.1f}% since last commit")
        if delta.tests_failed > 0:
            penalty += NEW_FAILURE_PENALTY
            explanations.append(f"{delta.tests_failed} new test failure(s) introduced")

    parts = [
        (tests_score, weights.tests),
        (coverage_score, weights.coverage),
        (stability_score, weights.stability),
    ]
    if performance_score is not None:
        parts.append((performance_score, weights.performance))
    total_weight = sum(w for _, w in parts)
    weighted = sum(s * w for s, w in parts) / total_weight if total_weight > 0 else 0
    final = clamp(weighted - penalty)

    measured = sum(
        [
            performance_score is not None and primary > 0 and "performance" not in borrowed,
            tests.total > 0 and "tests" not in borrowed,
            coverage.lines > 0 and "coverage" not in borrowed,
            stability.uptime > 0 and "stability" not in borrowed,
        ]
    )

    return HealthScoreResult(
        score=round_half_up(final),
        confidence=_confidence(measured),
        breakdown={
            "performance": round_half_up(performance_score) if performance_score is not None else None,
            "tests": round_half_up(tests_score),
            "coverage": round_half_up(coverage_score),
            "stability": round_half_up(stability_score),
        },
        explanations=explanations,
    )


def calculate_legacy_health_score(pass_rate: float, performance: Optional[float] = None) -> int:
    """Score a legacy report: ``passRate*0.5 + perf*0.3 + 20``, capped at 100.

    Without a matched performance audit the pass rate stands in for the
    performance term. Legacy snapshots always report ``high`` confidence.
    """
    perf_term = performance if performance is not None else pass_rate
    return min(round_half_up(pass_rate * 0.5 + perf_term * 0.3 + 20), 100)
