"""Coverage artifacts: the summary totals and the raw instrumentation dump.

``coverage-summary.json`` carries project-wide percentages under
``total.<metric>.pct``. ``coverage-final.json`` maps each instrumented
source file to its hit counters::

    {"/abs/src/a.ts": {"s": {"0": 3}, "f": {"0": 1}, "b": {"0": [1, 0]},
                       "statementMap": {"0": {"start": {"line": 4}}}}}
"""

from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from ..fs import FileSystem, LocalFileSystem
from ..logging_config import get_logger

logger = get_logger(__name__)


# ── Summary totals ───────────────────────────────────────────────────


@dataclass(frozen=True)
class CoverageSummary:
    """Project-wide percentages from a coverage summary."""

    lines: float
    statements: float
    branches: float
    functions: float


def _pct(total: dict, key: str) -> Optional[float]:
    entry = total.get(key)
    value = entry.get("pct") if isinstance(entry, dict) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return value


def parse_coverage_summary(content: str) -> Optional[CoverageSummary]:
    """Read ``total.*.pct``; None unless a numeric lines percentage exists."""
    try:
        data = json.loads(content)
    except ValueError:
        return None
    total = data.get("total") if isinstance(data, dict) else None
    if not isinstance(total, dict):
        return None
    lines = _pct(total, "lines")
    if lines is None:
        return None
    statements = _pct(total, "statements")
    return CoverageSummary(
        lines=lines,
        statements=lines if statements is None else statements,
        branches=_pct(total, "branches") or 0,
        functions=_pct(total, "functions") or 0,
    )


class CoverageSummaryCache:
    """Coverage summary lookups memoised by file path and modification time.

    One instance is handed to everything that needs the summary during a
    load pass; a rewritten summary file is picked up on the next call.
    """

    def __init__(self, paths: Sequence[Path], fs: Optional[FileSystem] = None) -> None:
        self.paths = tuple(paths)
        self.fs = fs or LocalFileSystem()
        self._entries: dict[tuple[Path, int], Optional[CoverageSummary]] = {}

    def _resolve(self) -> Optional[Path]:
        for path in self.paths:
            if self.fs.exists(path):
                return path
        return None

    def get(self) -> Optional[CoverageSummary]:
        path = self._resolve()
        if path is None:
            return None
        try:
            key = (path, self.fs.mtime_ns(path))
            if key not in self._entries:
                self._entries[key] = parse_coverage_summary(self.fs.read_text(path))
                if self._entries[key] is None:
                    logger.warning(f"Coverage summary {path} has no usable totals")
            return self._entries[key]
        except OSError as e:
            logger.warning(f"Cannot read coverage summary {path}: {e}")
            return None

    def lines_pct(self) -> Optional[float]:
        summary = self.get()
        return summary.lines if summary is not None else None


# ── Instrumentation dump ─────────────────────────────────────────────


@dataclass
class MetricCoverage:
    total: int = 0
    covered: int = 0
    pct: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "covered": self.covered, "pct": self.pct}


@dataclass
class LineCoverage(MetricCoverage):
    uncovered: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["uncovered"] = list(self.uncovered)
        return data


@dataclass
class FileCoverage:
    file: str
    lines: LineCoverage
    statements: MetricCoverage
    branches: MetricCoverage
    functions: MetricCoverage

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "lines": self.lines.to_dict(),
            "statements": self.statements.to_dict(),
            "branches": self.branches.to_dict(),
            "functions": self.functions.to_dict(),
        }


@dataclass
class CoverageReport:
    summary: dict[str, MetricCoverage]
    files: list[FileCoverage]

    def summary_dict(self) -> dict[str, Any]:
        return {name: metric.to_dict() for name, metric in self.summary.items()}

    def details_list(self) -> list[dict[str, Any]]:
        return [f.to_dict() for f in self.files]


def _hit_count(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return value


def _percentage(covered: int, total: int) -> float:
    return covered / total * 100 if total > 0 else 0


def compute_metric(counts: Iterable[Any]) -> MetricCoverage:
    """Count entries and how many of them were hit at least once."""
    values = list(counts)
    covered = sum(1 for v in values if _hit_count(v) > 0)
    return MetricCoverage(total=len(values), covered=covered, pct=_percentage(covered, len(values)))


def compute_line_coverage(statement_map: dict, statement_counts: dict) -> LineCoverage:
    """Collapse statement counters onto their starting source line.

    A line's hit count is the maximum over the statements that start on
    it, so a line is covered when any of its statements ran.
    """
    line_hits: dict[int, float] = {}
    for stmt_id, location in (statement_map or {}).items():
        start = location.get("start") if isinstance(location, dict) else None
        line = start.get("line") if isinstance(start, dict) else None
        if isinstance(line, bool) or not isinstance(line, int) or line <= 0:
            continue
        count = _hit_count((statement_counts or {}).get(stmt_id))
        line_hits[line] = max(line_hits.get(line, 0), count)

    total = len(line_hits)
    covered = sum(1 for hits in line_hits.values() if hits > 0)
    uncovered = sorted(line for line, hits in line_hits.items() if hits == 0)
    return LineCoverage(total=total, covered=covered, pct=_percentage(covered, total), uncovered=uncovered)


def _relative(file: str, root: Path) -> str:
    try:
        rel = os.path.relpath(file, str(root))
    except ValueError:
        rel = file
    return rel.replace("\\", "/")


def _flatten_branches(branches: Any) -> list[Any]:
    flat: list[Any] = []
    for counts in (branches or {}).values():
        if isinstance(counts, list):
            flat.extend(counts)
    return flat


def build_coverage_report(raw: dict, root: Path) -> CoverageReport:
    """Per-file and aggregate coverage from an instrumentation dump."""
    files: list[FileCoverage] = []
    for file, entry in raw.items():
        if not isinstance(entry, dict):
            continue
        statements = entry.get("s") if isinstance(entry.get("s"), dict) else {}
        functions = entry.get("f") if isinstance(entry.get("f"), dict) else {}
        branches = entry.get("b") if isinstance(entry.get("b"), dict) else {}
        statement_map = entry.get("statementMap") if isinstance(entry.get("statementMap"), dict) else {}
        files.append(
            FileCoverage(
                file=_relative(file, root),
                lines=compute_line_coverage(statement_map, statements),
                statements=compute_metric(statements.values()),
                branches=compute_metric(_flatten_branches(branches)),
                functions=compute_metric(functions.values()),
            )
        )
    files.sort(key=lambda f: f.file)

    summary: dict[str, MetricCoverage] = {}
    for name in ("lines", "statements", "branches", "functions"):
        total = sum(getattr(f, name).total for f in files)
        covered = sum(getattr(f, name).covered for f in files)
        summary[name] = MetricCoverage(total=total, covered=covered, pct=_percentage(covered, total))

    return CoverageReport(summary=summary, files=files)
