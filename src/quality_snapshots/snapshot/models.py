"""Data models for quality snapshots, one point-in-time measurement per commit.

Attribute names are snake_case; ``to_dict`` produces the camelCase JSON
shape stored in ``quality-snapshots/`` and served from the dashboard
cache.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from ..timestamps import parse_iso_ms

Confidence = Literal["high", "medium", "low"]
SnapshotSource = Literal["structured", "freeform"]
StabilityStatus = Literal["online", "degraded", "offline"]
CoverageTrend = Literal["up", "down", "stable"]

SCHEMA_VERSION = "1.1"


def _is_finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass
class TestSuite:
    """One named suite inside a test run."""

    __test__ = False  # not a pytest class

    name: str
    tests: int = 0
    passed: int = 0
    failed: int = 0
    duration: float = 0
    status: str = "passed"  # passed | failed | flaky

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tests": self.tests,
            "passed": self.passed,
            "failed": self.failed,
            "duration": self.duration,
            "status": self.status,
        }


@dataclass
class TestMetrics:
    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0  # ms
    suites: list[TestSuite] = field(default_factory=list)
    flaky_rate: Optional[float] = None

    @property
    def pass_rate(self) -> Optional[float]:
        """Percentage of passing tests, or None when nothing ran."""
        if not self.total:
            return None
        return self.passed / self.total * 100

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration": self.duration,
            "suites": [s.to_dict() for s in self.suites],
        }
        if self.flaky_rate is not None:
            data["flakyRate"] = self.flaky_rate
        return data


@dataclass
class CoverageMetrics:
    lines: float = 0
    statements: float = 0
    branches: float = 0
    functions: float = 0
    trend: str = "stable"

    def to_dict(self) -> dict[str, Any]:
        return {
            "lines": self.lines,
            "statements": self.statements,
            "branches": self.branches,
            "functions": self.functions,
            "trend": self.trend,
        }


@dataclass
class ScoreSet:
    """Four lighthouse-style category scores, each 0-100."""

    performance: float = 0
    accessibility: float = 0
    best_practices: float = 0
    seo: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "performance": self.performance,
            "accessibility": self.accessibility,
            "bestPractices": self.best_practices,
            "seo": self.seo,
        }


@dataclass
class WebVitals:
    lcp: float = 0  # ms
    cls: float = 0
    tbt: float = 0  # ms

    def to_dict(self) -> dict[str, Any]:
        return {"lcp": self.lcp, "cls": self.cls, "tbt": self.tbt}


@dataclass
class PerformanceMetrics:
    """Score sets for the base page and the optional home/feed targets.

    ``web_vitals`` belongs to whichever score set is primary.
    """

    lighthouse: ScoreSet = field(default_factory=ScoreSet)
    lighthouse_home: Optional[ScoreSet] = None
    lighthouse_feed: Optional[ScoreSet] = None
    web_vitals: WebVitals = field(default_factory=WebVitals)
    bundle_size: float = 0  # KB
    regressions: list[str] = field(default_factory=list)

    def score_sets(self) -> list[ScoreSet]:
        """Present score sets in primary-first order: feed, home, base."""
        return [s for s in (self.lighthouse_feed, self.lighthouse_home, self.lighthouse) if s is not None]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"lighthouse": self.lighthouse.to_dict()}
        if self.lighthouse_home is not None:
            data["lighthouseHome"] = self.lighthouse_home.to_dict()
        if self.lighthouse_feed is not None:
            data["lighthouseFeed"] = self.lighthouse_feed.to_dict()
        data["webVitals"] = self.web_vitals.to_dict()
        data["bundleSize"] = self.bundle_size
        data["regressions"] = list(self.regressions)
        return data


@dataclass
class StabilityMetrics:
    uptime: float = 100  # %
    latency: float = 0  # ms
    last_check: str = ""
    status: str = "online"

    def to_dict(self) -> dict[str, Any]:
        return {
            "uptime": self.uptime,
            "latency": self.latency,
            "lastCheck": self.last_check,
            "status": self.status,
        }


@dataclass
class QualityMetrics:
    tests: TestMetrics = field(default_factory=TestMetrics)
    coverage: CoverageMetrics = field(default_factory=CoverageMetrics)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    stability: StabilityMetrics = field(default_factory=StabilityMetrics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tests": self.tests.to_dict(),
            "coverage": self.coverage.to_dict(),
            "performance": self.performance.to_dict(),
            "stability": self.stability.to_dict(),
        }


@dataclass
class DataQuality:
    """Cached derivations of ``metrics``; never set independently."""

    lighthouse_valid: bool = False
    coverage_complete: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "lighthouseValid": self.lighthouse_valid,
            "coverageComplete": self.coverage_complete,
        }


@dataclass
class Snapshot:
    """One quality measurement tied to a commit.

    Structured snapshots are written once by the generation entrypoint;
    free-form ones are rebuilt from their report file on every load.
    """

    commit_hash: str
    timestamp: str  # ISO-8601
    branch: str = "main"
    health_score: int = 0
    confidence_level: str = "low"
    source: str = "structured"
    metrics: QualityMetrics = field(default_factory=QualityMetrics)
    data_quality: DataQuality = field(default_factory=DataQuality)
    report_file: Optional[str] = None
    version: str = SCHEMA_VERSION

    @property
    def epoch_ms(self) -> int:
        """Timestamp as epoch milliseconds (0 when unparseable)."""
        return parse_iso_ms(self.timestamp) or 0

    def refresh_data_quality(self) -> DataQuality:
        """Recompute the cached ``data_quality`` flags from ``metrics``."""
        self.data_quality = derive_data_quality(self.metrics)
        return self.data_quality

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "commitHash": self.commit_hash,
            "timestamp": self.timestamp,
            "branch": self.branch,
            "healthScore": self.health_score,
            "confidenceLevel": self.confidence_level,
        }
        if self.report_file is not None:
            data["reportFile"] = self.report_file
        data["source"] = self.source
        data["dataQuality"] = self.data_quality.to_dict()
        data["metrics"] = self.metrics.to_dict()
        return data


# ── Derivations ──────────────────────────────────────────────────────


def is_coverage_complete(coverage: CoverageMetrics) -> bool:
    """All four percentages finite, with branch and function data present.

    A zero branch or function figure is indistinguishable from "not
    instrumented", so it makes coverage incomplete rather than 0%.
    """
    return (
        _is_finite(coverage.lines)
        and _is_finite(coverage.statements)
        and _is_finite(coverage.branches)
        and _is_finite(coverage.functions)
        and coverage.branches > 0
        and coverage.functions > 0
    )


def is_lighthouse_valid(performance: PerformanceMetrics) -> bool:
    """True when any present score set carries a performance score above 0."""
    scores = [s.performance for s in performance.score_sets() if _is_finite(s.performance)]
    return any(value > 0 for value in scores)


def derive_data_quality(metrics: QualityMetrics) -> DataQuality:
    return DataQuality(
        lighthouse_valid=is_lighthouse_valid(metrics.performance),
        coverage_complete=is_coverage_complete(metrics.coverage),
    )
