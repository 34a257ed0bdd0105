"""Single-number views of a snapshot's coverage and performance blocks."""

from __future__ import annotations

import math
from typing import Optional

from ..snapshot.models import CoverageMetrics, PerformanceMetrics, is_coverage_complete


def _finite(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def coverage_composite(coverage: CoverageMetrics, coverage_complete: Optional[bool] = None) -> float:
    """Mean of the coverage percentages that carry information.

    Lines and statements always count. Branches and functions count only
    when coverage is complete or the figure itself is above zero, so a
    project that does not instrument branches is not scored as 0% there.

    >>> coverage_composite(CoverageMetrics(lines=80, statements=78))
    79.0
    """
    if coverage_complete is None:
        coverage_complete = is_coverage_complete(coverage)

    values = [v for v in (coverage.lines, coverage.statements) if _finite(v)]
    if _finite(coverage.branches) and (coverage_complete or coverage.branches > 0):
        values.append(coverage.branches)
    if _finite(coverage.functions) and (coverage_complete or coverage.functions > 0):
        values.append(coverage.functions)
    if not values:
        return 0.0
    return sum(values) / len(values)


def primary_performance_score(performance: PerformanceMetrics) -> float:
    """First positive performance score in feed, home, base order; NaN if none."""
    for score_set in performance.score_sets():
        if _finite(score_set.performance) and score_set.performance > 0:
            return float(score_set.performance)
    return math.nan
