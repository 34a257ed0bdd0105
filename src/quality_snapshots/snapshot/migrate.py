"""Decode every snapshot shape that has ever been written to disk.

Snapshot files went through several layouts: the current canonical one,
an older one with the health score nested as ``{score, confidence}``, a
``meta`` envelope carrying commit/branch/timestamp, and a flat layout
with ``tests``/``coverage``/``performance``/``stability`` at the top
level. Each layout has its own decoder; ``migrate_snapshot`` tries them
in order and returns the first result. ``data_quality`` is always
recomputed from the decoded metrics.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Optional

from ..logging_config import get_logger
from ..timestamps import now_ms, parse_iso_ms, round_half_up, to_iso
from .models import (
    CoverageMetrics,
    PerformanceMetrics,
    QualityMetrics,
    ScoreSet,
    Snapshot,
    StabilityMetrics,
    TestMetrics,
    TestSuite,
    WebVitals,
)

logger = get_logger(__name__)

Decoder = Callable[[dict, Callable[[], int]], Optional[Snapshot]]

_METRIC_BLOCKS = ("tests", "coverage", "performance", "stability")


# ── Value helpers ────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _obj(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _first_number(*candidates: Any, default: float = 0) -> float:
    """First candidate that is a non-zero finite number, else ``default``."""
    for value in candidates:
        if _is_number(value) and value != 0:
            return value
    return default


def _first_text(*candidates: Any, default: str = "") -> str:
    for value in candidates:
        if isinstance(value, str) and value:
            return value
    return default


def _number_or(value: Any, default: float) -> float:
    return value if _is_number(value) else default


def _suites(raw_suites: Any) -> list[TestSuite]:
    suites: list[TestSuite] = []
    if not isinstance(raw_suites, list):
        return suites
    for item in raw_suites:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            continue
        suites.append(
            TestSuite(
                name=item["name"],
                tests=_number_or(item.get("tests"), 0),
                passed=_number_or(item.get("passed"), 0),
                failed=_number_or(item.get("failed"), 0),
                duration=_number_or(item.get("duration"), 0),
                status=_first_text(item.get("status"), default="passed"),
            )
        )
    return suites


def _labels(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _score_set(raw: Any) -> Optional[ScoreSet]:
    if not isinstance(raw, dict):
        return None
    return ScoreSet(
        performance=_number_or(raw.get("performance"), 0),
        accessibility=_number_or(raw.get("accessibility"), 0),
        best_practices=_number_or(raw.get("bestPractices"), 0),
        seo=_number_or(raw.get("seo"), 0),
    )


def _source(raw: dict) -> str:
    return "freeform" if raw.get("source") in ("freeform", "markdown") else "structured"


def _health_score(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if _is_number(value):
        return round_half_up(value)
    return 0


# ── Canonical layout ─────────────────────────────────────────────────


def _decode_current(raw: dict, clock: Callable[[], int]) -> Optional[Snapshot]:
    """Current layout: flat score fields and all four blocks under ``metrics``.

    Present fields pass through untouched; absent optional fields get
    their defaults.
    """
    commit = raw.get("commitHash")
    metrics = raw.get("metrics")
    timestamp = raw.get("timestamp")
    if not isinstance(commit, str) or not commit:
        return None
    if not isinstance(metrics, dict) or not all(isinstance(metrics.get(k), dict) for k in _METRIC_BLOCKS):
        return None
    if not _is_number(raw.get("healthScore")):
        return None
    if not isinstance(timestamp, str) or parse_iso_ms(timestamp) is None:
        return None

    tests = metrics["tests"]
    coverage = metrics["coverage"]
    performance = metrics["performance"]
    stability = metrics["stability"]
    vitals = _obj(performance.get("webVitals"))
    flaky = tests.get("flakyRate")

    return Snapshot(
        version=_first_text(raw.get("version"), default="1.1"),
        commit_hash=commit,
        timestamp=timestamp,
        branch=_first_text(raw.get("branch"), default="main"),
        health_score=raw["healthScore"],
        confidence_level=_first_text(raw.get("confidenceLevel"), default="low"),
        source=_source(raw),
        report_file=raw.get("reportFile") if isinstance(raw.get("reportFile"), str) else None,
        metrics=QualityMetrics(
            tests=TestMetrics(
                total=_number_or(tests.get("total"), 0),
                passed=_number_or(tests.get("passed"), 0),
                failed=_number_or(tests.get("failed"), 0),
                skipped=_number_or(tests.get("skipped"), 0),
                duration=_number_or(tests.get("duration"), 0),
                suites=_suites(tests.get("suites")),
                flaky_rate=flaky if _is_number(flaky) else None,
            ),
            coverage=CoverageMetrics(
                lines=_number_or(coverage.get("lines"), 0),
                statements=_number_or(coverage.get("statements"), 0),
                branches=_number_or(coverage.get("branches"), 0),
                functions=_number_or(coverage.get("functions"), 0),
                trend=_first_text(coverage.get("trend"), default="stable"),
            ),
            performance=PerformanceMetrics(
                lighthouse=_score_set(performance.get("lighthouse")) or ScoreSet(),
                lighthouse_home=_score_set(performance.get("lighthouseHome")),
                lighthouse_feed=_score_set(performance.get("lighthouseFeed")),
                web_vitals=WebVitals(
                    lcp=_number_or(vitals.get("lcp"), 0),
                    cls=_number_or(vitals.get("cls"), 0),
                    tbt=_number_or(vitals.get("tbt"), 0),
                ),
                bundle_size=_number_or(performance.get("bundleSize"), 0),
                regressions=_labels(performance.get("regressions")),
            ),
            stability=StabilityMetrics(
                uptime=_number_or(stability.get("uptime"), 100),
                latency=_number_or(stability.get("latency"), 0),
                last_check=_first_text(stability.get("lastCheck"), default=timestamp),
                status=_first_text(stability.get("status"), default="online"),
            ),
        ),
    )


# ── Older layouts ────────────────────────────────────────────────────


def _has_metric_blocks(raw: dict) -> bool:
    if isinstance(raw.get("metrics"), dict):
        return True
    return any(isinstance(raw.get(k), dict) for k in _METRIC_BLOCKS)


def _resolve_metrics(raw: dict, timestamp: str) -> QualityMetrics:
    """Read metrics from ``metrics.*`` first, then from top-level blocks."""
    m = _obj(raw.get("metrics"))
    m_tests, top_tests = _obj(m.get("tests")), _obj(raw.get("tests"))
    m_cov, top_cov = _obj(m.get("coverage")), _obj(raw.get("coverage"))
    m_perf, top_perf = _obj(m.get("performance")), _obj(raw.get("performance"))
    m_stab, top_stab = _obj(m.get("stability")), _obj(raw.get("stability"))
    base = _obj(m_perf.get("lighthouse"))
    vitals = _obj(m_perf.get("webVitals"))
    regressions = m_perf.get("regressions") or top_perf.get("regressions") or []

    return QualityMetrics(
        tests=TestMetrics(
            total=_first_number(m_tests.get("total"), top_tests.get("total")),
            passed=_first_number(m_tests.get("passed"), top_tests.get("passed")),
            failed=_first_number(m_tests.get("failed"), top_tests.get("failed")),
            skipped=_first_number(m_tests.get("skipped"), top_tests.get("skipped")),
            duration=_first_number(
                m_tests.get("duration"), top_tests.get("durationMs"), top_tests.get("duration")
            ),
            suites=_suites(m_tests.get("suites") or top_tests.get("suites")),
        ),
        coverage=CoverageMetrics(
            lines=_first_number(m_cov.get("lines"), top_cov.get("lines")),
            statements=_first_number(m_cov.get("statements"), top_cov.get("statements"), top_cov.get("lines")),
            branches=_first_number(m_cov.get("branches"), top_cov.get("branches")),
            functions=_first_number(m_cov.get("functions"), top_cov.get("functions")),
            trend=_first_text(m_cov.get("trend"), top_cov.get("trend"), default="stable"),
        ),
        performance=PerformanceMetrics(
            lighthouse=ScoreSet(
                performance=_first_number(base.get("performance"), top_perf.get("lighthouseScore")),
                accessibility=_first_number(base.get("accessibility"), default=100),
                best_practices=_first_number(base.get("bestPractices"), default=100),
                seo=_first_number(base.get("seo"), default=100),
            ),
            lighthouse_home=_score_set(m_perf.get("lighthouseHome")),
            lighthouse_feed=_score_set(m_perf.get("lighthouseFeed")),
            web_vitals=WebVitals(
                lcp=_first_number(vitals.get("lcp"), top_perf.get("lcp")),
                cls=_first_number(vitals.get("cls"), top_perf.get("cls")),
                tbt=_first_number(vitals.get("tbt"), top_perf.get("tbt")),
            ),
            bundle_size=_first_number(m_perf.get("bundleSize"), top_perf.get("bundleSize")),
            regressions=_labels(regressions),
        ),
        stability=StabilityMetrics(
            uptime=_first_number(m_stab.get("uptime"), top_stab.get("uptimeAvailability"), top_stab.get("uptime"), default=100),
            latency=_first_number(m_stab.get("latency"), top_stab.get("latency")),
            last_check=_first_text(m_stab.get("lastCheck"), top_stab.get("lastCheck"), default=timestamp),
            status=_first_text(m_stab.get("status"), top_stab.get("status"), default="online"),
        ),
    )


def _resolve_timestamp(*candidates: Any, clock: Callable[[], int]) -> Optional[str]:
    """First present timestamp as ISO text; None if it is present but invalid."""
    for value in candidates:
        if value is None or value == "" or value == 0:
            continue
        ms = parse_iso_ms(value)
        return to_iso(ms) if ms is not None else None
    return to_iso(clock())


def _assemble(
    raw: dict,
    *,
    commit: str,
    branch: str,
    timestamp: str,
    score: int,
    confidence: str,
) -> Snapshot:
    return Snapshot(
        version=_first_text(raw.get("version"), default="1.0"),
        commit_hash=commit,
        timestamp=timestamp,
        branch=branch,
        health_score=score,
        confidence_level=confidence,
        source=_source(raw),
        report_file=raw.get("reportFile") if isinstance(raw.get("reportFile"), str) else None,
        metrics=_resolve_metrics(raw, timestamp),
    )


def _decode_nested_score(raw: dict, clock: Callable[[], int]) -> Optional[Snapshot]:
    """Health score stored as ``{"score": n, "confidence": "..."}``."""
    health = raw.get("healthScore")
    if not isinstance(health, dict) or "score" not in health or not _has_metric_blocks(raw):
        return None
    meta = _obj(raw.get("meta"))
    timestamp = _resolve_timestamp(raw.get("timestamp"), meta.get("timestamp"), clock=clock)
    if timestamp is None:
        return None
    return _assemble(
        raw,
        commit=_first_text(raw.get("commitHash"), meta.get("commit"), default="unknown"),
        branch=_first_text(raw.get("branch"), meta.get("branch"), default="main"),
        timestamp=timestamp,
        score=_health_score(health.get("score")),
        confidence=_first_text(raw.get("confidenceLevel"), health.get("confidence"), default="low"),
    )


def _decode_meta_envelope(raw: dict, clock: Callable[[], int]) -> Optional[Snapshot]:
    """Identity under ``meta: {timestamp, commit, branch}``."""
    meta = raw.get("meta")
    if not isinstance(meta, dict) or not _has_metric_blocks(raw):
        return None
    timestamp = _resolve_timestamp(raw.get("timestamp"), meta.get("timestamp"), clock=clock)
    if timestamp is None:
        return None
    return _assemble(
        raw,
        commit=_first_text(raw.get("commitHash"), meta.get("commit"), default="unknown"),
        branch=_first_text(raw.get("branch"), meta.get("branch"), default="main"),
        timestamp=timestamp,
        score=_health_score(raw.get("healthScore")),
        confidence=_first_text(raw.get("confidenceLevel"), default="low"),
    )


def _decode_flat_blocks(raw: dict, clock: Callable[[], int]) -> Optional[Snapshot]:
    """Top-level identity with metric blocks at the top level or partially under ``metrics``."""
    if not _has_metric_blocks(raw):
        return None
    timestamp = _resolve_timestamp(raw.get("timestamp"), clock=clock)
    if timestamp is None:
        return None
    return _assemble(
        raw,
        commit=_first_text(raw.get("commitHash"), default="unknown"),
        branch=_first_text(raw.get("branch"), default="main"),
        timestamp=timestamp,
        score=_health_score(raw.get("healthScore")),
        confidence=_first_text(raw.get("confidenceLevel"), default="low"),
    )


DECODERS: tuple[Decoder, ...] = (
    _decode_current,
    _decode_nested_score,
    _decode_meta_envelope,
    _decode_flat_blocks,
)


def migrate_snapshot(raw: Any, clock: Callable[[], int] = now_ms) -> Optional[Snapshot]:
    """Convert any known snapshot layout into a ``Snapshot``.

    Args:
        raw: Parsed JSON of one snapshot file.
        clock: Source of "now" for layouts that carry no timestamp.

    Returns:
        The decoded snapshot with freshly derived ``data_quality``, or None
        when no decoder recognises the input. Never raises.
    """
    if not isinstance(raw, dict):
        return None
    for decoder in DECODERS:
        try:
            snapshot = decoder(raw, clock)
        except (TypeError, ValueError, AttributeError, KeyError, OverflowError) as e:
            logger.debug(f"{decoder.__name__} rejected input: {e}")
            continue
        if snapshot is not None:
            snapshot.refresh_data_quality()
            return snapshot
    return None
