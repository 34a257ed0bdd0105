"""Legacy free-text audit reports.

Two generations of markdown reports predate structured snapshots:
``reports/audit_report_<ts>.md`` and ``quality/quality-<ts>.md``. Their
bodies are human-oriented, so metrics are recovered heuristically:

1. a hidden ``<!-- METRICS_START ... METRICS_END -->`` block;
2. visible "coverage"/"cobertura" and bundle-size lines;
3. a sibling ``.json`` with raw build totals (bundle size only);
4. the project-wide coverage summary (coverage only).

A pipe table under a known header row gives pass/fail step counts and
the ``<n>s`` durations on its rows.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..fs import FileSystem, LocalFileSystem
from ..logging_config import get_logger
from ..timestamps import decode_filename_timestamp, round_half_up
from .coverage import CoverageSummaryCache

logger = get_logger(__name__)

_METRICS_BLOCK = re.compile(r"<!-- METRICS_START(.*?)METRICS_END -->", re.DOTALL)
_BLOCK_COVERAGE = re.compile(r"coverage:\s+(\d+(?:\.\d+)?)%")
_BLOCK_BUNDLE = re.compile(r"bundle_total_kb:\s+(\d+(?:\.\d+)?)")
_PERCENT = re.compile(r"(\d+(?:\.\d+)?)%")
_KB = re.compile(r"`?(\d+(?:\.\d+)?)`?\s*KB", re.IGNORECASE)
_BACKTICKED = re.compile(r"`(\d+(?:\.\d+)?)`")
_DURATION = re.compile(r"\b(\d+(?:\.\d+)?)s\b")
_LEADING_INT = re.compile(r"^[+-]?\d+")

COVERAGE_LABELS = ("coverage", "cobertura")
BUNDLE_LABELS = ("bundle_total_kb", "Tamanho Bundle:", "Bundle Size:")
TABLE_HEADERS = ("| Etapa | Status |", "| Step | Status |", "| Category | Score |")
PASS_MARKERS = ("✅", "PASSED")


@dataclass(frozen=True)
class LegacyReportSource:
    """One legacy report convention: a directory plus a filename pattern."""

    directory: Path
    prefix: str
    suffix: str

    def matches(self, name: str) -> bool:
        return name.startswith(self.prefix) and name.endswith(self.suffix)

    def timestamp_ms(self, name: str) -> Optional[int]:
        """Decode the instant encoded between prefix and suffix."""
        if not self.matches(name):
            return None
        return decode_filename_timestamp(name[len(self.prefix) : len(name) - len(self.suffix)])


@dataclass
class LegacyReportMetrics:
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    total_duration: float = 0  # seconds
    coverage: float = 0
    bundle_size: float = 0  # KB

    @property
    def pass_rate(self) -> int:
        """Integer percentage of passing steps; 0 when there is no table."""
        if self.total_steps <= 0:
            return 0
        return round_half_up(self.passed_steps / self.total_steps * 100)


def legacy_dedup_key(timestamp_ms: int) -> str:
    """Seven hex digits derived from a report's timestamp.

    The decimal timestamp is folded with the 31-multiplier string hash
    (wrapping at 32 bits, signed); the absolute value is written in hex.
    Reports whose filenames decode to the same instant share a key.
    """
    h = 0
    for ch in str(timestamp_ms):
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x")[:7]


def _first_line_with(lines: list[str], labels: tuple[str, ...], lower: bool = False) -> Optional[str]:
    for line in lines:
        haystack = line.lower() if lower else line
        if any(label in haystack for label in labels):
            return line
    return None


def _sibling_build_total(report_path: Path, fs: FileSystem) -> float:
    """``raw.build.jsTotal + cssTotal`` from the report's ``.json`` twin."""
    json_path = report_path.with_suffix(".json")
    if not fs.exists(json_path):
        return 0
    try:
        data = json.loads(fs.read_text(json_path))
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring build totals in {json_path.name}: {e}")
        return 0

    build: Any = data.get("raw", {}).get("build", {}) if isinstance(data, dict) else {}
    if not isinstance(build, dict):
        return 0

    def _kb(key: str) -> float:
        value = build.get(key) or 0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0

    total = _kb("jsTotal") + _kb("cssTotal")
    return round(total, 2) if total > 0 else 0


def _count_table(lines: list[str], metrics: LegacyReportMetrics) -> None:
    in_table = False
    for line in lines:
        if any(header in line for header in TABLE_HEADERS):
            in_table = True
            continue
        if not in_table:
            continue
        if not line.startswith("|"):
            in_table = False
            continue
        if "---" in line:
            continue
        parts = [p.strip() for p in line.split("|") if p.strip()]
        if len(parts) < 2:
            continue
        metrics.total_steps += 1
        leading = _LEADING_INT.match(parts[1])
        if any(marker in line for marker in PASS_MARKERS) or (leading and int(leading.group()) > 0):
            metrics.passed_steps += 1
        else:
            metrics.failed_steps += 1


def parse_legacy_report(
    content: str,
    report_path: Optional[Path] = None,
    fs: Optional[FileSystem] = None,
    coverage_cache: Optional[CoverageSummaryCache] = None,
) -> LegacyReportMetrics:
    """Recover step counts, duration, coverage and bundle size from a report body."""
    fs = fs or LocalFileSystem()
    lines = content.splitlines()
    metrics = LegacyReportMetrics()

    block = _METRICS_BLOCK.search(content)
    if block:
        cov = _BLOCK_COVERAGE.search(block.group(1))
        size = _BLOCK_BUNDLE.search(block.group(1))
        if cov:
            metrics.coverage = float(cov.group(1))
        if size:
            metrics.bundle_size = float(size.group(1))

    if metrics.coverage == 0:
        line = _first_line_with(lines, COVERAGE_LABELS, lower=True)
        match = _PERCENT.search(line) if line else None
        if match:
            metrics.coverage = float(match.group(1))

    if metrics.bundle_size == 0:
        line = _first_line_with(lines, BUNDLE_LABELS)
        match = (_KB.search(line) or _BACKTICKED.search(line)) if line else None
        if match:
            metrics.bundle_size = float(match.group(1))

    if metrics.bundle_size == 0 and report_path is not None and report_path.suffix.lower() == ".md":
        metrics.bundle_size = _sibling_build_total(report_path, fs)

    if metrics.coverage == 0 and coverage_cache is not None:
        pct = coverage_cache.lines_pct()
        if pct is not None:
            metrics.coverage = pct

    _count_table(lines, metrics)

    for line in lines:
        if "|" not in line:
            continue
        match = _DURATION.search(line)
        if match:
            metrics.total_duration += float(match.group(1))

    return metrics
