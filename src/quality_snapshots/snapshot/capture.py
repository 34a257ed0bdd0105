"""Capture a structured snapshot for the current commit.

Collects test results, coverage, performance audits and bundle size
from their artifacts, scores them against the previous snapshot and
persists the result through ``SnapshotStore.save``.
"""

from __future__ import annotations

import copy
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..artifacts.bundle import compute_bundle_size
from ..artifacts.lighthouse import ParsedAudit
from ..artifacts.test_results import parse_test_report
from ..config import PipelineConfig
from ..health import HealthScoreResult, calculate_health_score
from ..logging_config import get_logger
from ..timestamps import now_ms, to_iso
from .models import (
    CoverageMetrics,
    PerformanceMetrics,
    QualityMetrics,
    ScoreSet,
    Snapshot,
    StabilityMetrics,
    TestMetrics,
    is_lighthouse_valid,
)
from .store import SnapshotStore

logger = get_logger(__name__)

DEFAULT_RUNNER = "bun"
TEST_TIMEOUT_SECONDS = 1800


@dataclass
class CaptureResult:
    snapshot: Snapshot
    path: Path
    health: HealthScoreResult


def _git(root: Path, *args: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", "-C", str(root), "rev-parse", *args],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip() or None
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return None


def git_commit_info(root: Path) -> tuple[str, str]:
    """Short HEAD commit and branch name; ``unknown``/``main`` outside git."""
    return _git(root, "--short", "HEAD") or "unknown", _git(root, "--abbrev-ref", "HEAD") or "main"


def build_test_command(config: PipelineConfig) -> list[str]:
    """Argument vector for the test run, writing its reports where the pipeline reads them."""
    layout = config.layout
    return [
        config.runner_path or DEFAULT_RUNNER,
        *shlex.split(config.test_command),
        f"--outputFile={layout.test_report}",
        f"--coverage.reportsDirectory={layout.coverage_dir}",
    ]


def execute_test_run(config: PipelineConfig) -> bool:
    """Run the test command. A failing suite still produces a report.

    Returns False only when the command could not be started.
    """
    command = build_test_command(config)
    logger.info(f"Running: {shlex.join(command)}")
    try:
        result = subprocess.run(
            command,
            cwd=str(config.layout.root),
            capture_output=True,
            text=True,
            timeout=TEST_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        logger.error(f"Test run failed to complete: {e}")
        return False
    if result.returncode != 0:
        logger.warning(f"Test command exited with {result.returncode}")
    return True


def collect_test_metrics(store: SnapshotStore, finished_ms: int) -> TestMetrics:
    path = store.layout.test_report
    if not store.fs.exists(path):
        logger.warning(f"No test report at {path}")
        return TestMetrics()
    try:
        return parse_test_report(store.fs.read_text(path), finished_ms, store.layout.root)
    except (OSError, ValueError) as e:
        logger.warning(f"Cannot read test report {path.name}: {e}")
        return TestMetrics()


def collect_coverage(store: SnapshotStore) -> CoverageMetrics:
    summary = store.coverage_cache.get()
    if summary is None:
        return CoverageMetrics()
    return CoverageMetrics(
        lines=summary.lines,
        statements=summary.statements,
        branches=summary.branches,
        functions=summary.functions,
    )


def _score_set(audit: Optional[ParsedAudit]) -> Optional[ScoreSet]:
    return audit.score_set() if audit is not None else None


def collect_performance(store: SnapshotStore, now: int, history: list[Snapshot]) -> tuple[PerformanceMetrics, bool]:
    """Performance block for ``now``; second value is True when it came from ``history``.

    Audits within the match window of ``now`` win. Otherwise the scores of
    the most recent snapshot with a valid performance score are reused.
    """
    matcher = store.matcher()
    feed = matcher.find_match(now, "feed", "desktop")
    home = matcher.find_match(now, "home", "desktop")
    primary = feed or home or matcher.find_match(now, "any", "desktop")

    if primary is not None:
        return (
            PerformanceMetrics(
                lighthouse=primary.score_set(),
                lighthouse_home=_score_set(home),
                lighthouse_feed=_score_set(feed),
                web_vitals=primary.web_vitals(),
            ),
            False,
        )

    donor = next((s for s in history if is_lighthouse_valid(s.metrics.performance)), None)
    if donor is None:
        return PerformanceMetrics(), False

    source = donor.metrics.performance
    base = source.lighthouse_feed or source.lighthouse_home or source.lighthouse
    logger.info(f"No recent performance audit; reusing scores from {donor.commit_hash}")
    return (
        PerformanceMetrics(
            lighthouse=copy.deepcopy(base),
            lighthouse_home=copy.deepcopy(source.lighthouse_home),
            lighthouse_feed=copy.deepcopy(source.lighthouse_feed),
            web_vitals=copy.deepcopy(source.web_vitals),
        ),
        True,
    )


def generate_snapshot(
    config: PipelineConfig,
    store: Optional[SnapshotStore] = None,
    execute_tests: bool = False,
    clock: Callable[[], int] = now_ms,
) -> CaptureResult:
    """Build, score and save the snapshot of the current working tree.

    Raises:
        SnapshotWriteError: If the snapshot cannot be persisted.
    """
    store = store or SnapshotStore(config, clock=clock)
    root = store.layout.root
    commit, branch = git_commit_info(root)

    if execute_tests:
        execute_test_run(config)

    now = clock()
    timestamp = to_iso(now)
    history = store.list()

    tests = collect_test_metrics(store, now)
    coverage = collect_coverage(store)
    performance, borrowed_performance = collect_performance(store, now, history)
    performance.bundle_size = compute_bundle_size(store.fs, store.layout.dist) or 0
    stability = StabilityMetrics(uptime=100, latency=0, last_check=timestamp, status="online")

    health = calculate_health_score(
        performance,
        tests,
        coverage,
        stability,
        previous=history[0] if history else None,
        weights=config.weights,
        borrowed={"performance"} if borrowed_performance else (),
    )

    snapshot = Snapshot(
        commit_hash=commit,
        timestamp=timestamp,
        branch=branch,
        health_score=health.score,
        confidence_level=health.confidence,
        source="structured",
        metrics=QualityMetrics(tests=tests, coverage=coverage, performance=performance, stability=stability),
    )
    snapshot.refresh_data_quality()

    path = store.save(snapshot)
    return CaptureResult(snapshot=snapshot, path=path, health=health)
