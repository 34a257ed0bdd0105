"""Gap filling for the newest snapshot.

The newest record is what the dashboard headlines, and it is often
written before every audit has finished. ``backfill_latest`` fills its
missing blocks from auxiliary artifacts or from older snapshots. Older
records are never modified.
"""

from __future__ import annotations

import copy
import math
from typing import Callable, Optional, Sequence

from ..artifacts.coverage import CoverageSummary
from ..logging_config import get_logger
from .models import Snapshot, is_lighthouse_valid

logger = get_logger(__name__)

CoverageSource = Callable[[], Optional[CoverageSummary]]
BundleSource = Callable[[], Optional[float]]


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


def _backfill_performance(latest: Snapshot, older: Sequence[Snapshot]) -> bool:
    if is_lighthouse_valid(latest.metrics.performance):
        return False
    donor = next((s for s in older if is_lighthouse_valid(s.metrics.performance)), None)
    if donor is None:
        return False
    source, target = donor.metrics.performance, latest.metrics.performance
    target.lighthouse = copy.deepcopy(source.lighthouse)
    target.lighthouse_home = copy.deepcopy(source.lighthouse_home)
    target.lighthouse_feed = copy.deepcopy(source.lighthouse_feed)
    target.web_vitals = copy.deepcopy(source.web_vitals)
    logger.debug(f"Borrowed performance scores from {donor.commit_hash}")
    return True


def _backfill_coverage(latest: Snapshot, older: Sequence[Snapshot], coverage_source: CoverageSource) -> bool:
    coverage = latest.metrics.coverage
    if coverage.lines != 0:
        return False

    summary = coverage_source()
    if summary is not None:
        coverage.lines = summary.lines
        coverage.statements = summary.statements
        if summary.branches > 0:
            coverage.branches = summary.branches
        if summary.functions > 0:
            coverage.functions = summary.functions
        logger.debug("Filled coverage from the coverage summary")
        return False

    donor = next((s for s in older if s.metrics.coverage.lines > 0), None)
    if donor is None:
        return False
    source = donor.metrics.coverage
    coverage.lines = source.lines
    coverage.statements = source.statements
    coverage.branches = source.branches
    coverage.functions = source.functions
    logger.debug(f"Borrowed coverage from {donor.commit_hash}")
    return True


def _backfill_branch_coverage(latest: Snapshot, older: Sequence[Snapshot]) -> bool:
    """Borrow branches/functions only; lines and statements stay measured."""
    coverage = latest.metrics.coverage
    has_core = math.isfinite(coverage.lines) and math.isfinite(coverage.statements) and (
        coverage.lines > 0 or coverage.statements > 0
    )
    missing = not _positive(coverage.branches) and not _positive(coverage.functions)
    if not (has_core and missing):
        return False

    donor = next(
        (s for s in older if s.metrics.coverage.branches > 0 and s.metrics.coverage.functions > 0),
        None,
    )
    if donor is None:
        return False
    coverage.branches = donor.metrics.coverage.branches
    coverage.functions = donor.metrics.coverage.functions
    logger.debug(f"Borrowed branch/function coverage from {donor.commit_hash}")
    return True


def _backfill_bundle(latest: Snapshot, older: Sequence[Snapshot], bundle_source: BundleSource) -> bool:
    performance = latest.metrics.performance
    if performance.bundle_size != 0:
        return False

    measured = bundle_source()
    if measured is not None:
        performance.bundle_size = measured
        return False

    donor = next((s for s in older if s.metrics.performance.bundle_size > 0), None)
    if donor is None:
        return False
    performance.bundle_size = donor.metrics.performance.bundle_size
    return True


def backfill_latest(
    snapshots: Sequence[Snapshot],
    coverage_source: CoverageSource,
    bundle_source: BundleSource,
) -> set[str]:
    """Fill gaps in ``snapshots[0]`` in place.

    ``snapshots`` must be sorted newest first. Donors are searched from
    the second entry on, nearest first.

    Returns:
        Names of the metric categories that were borrowed from another
        snapshot (``performance``, ``coverage``, ``bundle_size``), as
        opposed to read from a current artifact.
    """
    borrowed: set[str] = set()
    if not snapshots:
        return borrowed

    latest, older = snapshots[0], snapshots[1:]
    if _backfill_performance(latest, older):
        borrowed.add("performance")
    if _backfill_coverage(latest, older, coverage_source):
        borrowed.add("coverage")
    if _backfill_branch_coverage(latest, older):
        borrowed.add("coverage")
    if _backfill_bundle(latest, older, bundle_source):
        borrowed.add("bundle_size")

    latest.refresh_data_quality()
    return borrowed
