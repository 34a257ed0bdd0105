"""Rolling averages over the snapshot history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import numpy as np

from ..health import coverage_composite, primary_performance_score
from ..snapshot.models import Snapshot
from ..timestamps import round1


def finite_mean(values: Iterable[float]) -> float:
    """Mean of the finite values; NaN and infinities are left out entirely.

    >>> finite_mean([85, float("nan"), 95])
    90.0
    """
    arr = np.asarray(list(values), dtype=float)
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return 0.0
    return float(finite.mean())


@dataclass(frozen=True)
class Averages:
    coverage: float = 0
    performance: float = 0
    bundle_size: float = 0
    tests_pass_rate: float = 0
    lcp: float = 0
    cls: float = 0
    tbt: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "coverage": self.coverage,
            "performance": self.performance,
            "bundleSize": self.bundle_size,
            "testsPassRate": self.tests_pass_rate,
            "lcp": self.lcp,
            "cls": self.cls,
            "tbt": self.tbt,
        }


def _pass_rate(snapshot: Snapshot) -> float:
    tests = snapshot.metrics.tests
    if not tests.total:
        return 0.0
    return tests.passed / tests.total * 100


def compute_averages(snapshots: Sequence[Snapshot]) -> Averages:
    """Averages rounded to one decimal.

    A snapshot without a performance score contributes NaN to the
    performance series and so does not count there.
    """
    vitals = [s.metrics.performance.web_vitals for s in snapshots]
    return Averages(
        coverage=round1(
            finite_mean(coverage_composite(s.metrics.coverage, s.data_quality.coverage_complete) for s in snapshots)
        ),
        performance=round1(finite_mean(primary_performance_score(s.metrics.performance) for s in snapshots)),
        bundle_size=round1(finite_mean(s.metrics.performance.bundle_size or 0 for s in snapshots)),
        tests_pass_rate=round1(finite_mean(_pass_rate(s) for s in snapshots)),
        lcp=round1(finite_mean(v.lcp or 0 for v in vitals)),
        cls=round1(finite_mean(v.cls or 0 for v in vitals)),
        tbt=round1(finite_mean(v.tbt or 0 for v in vitals)),
    )
