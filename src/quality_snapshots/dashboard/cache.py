"""Dashboard cache: one JSON document holding everything the dashboard shows.

Layout::

    {
      "generatedAt": "<iso>",
      "summary": {
        "count", "latestTimestamp", "averages",
        "security", "securityHistory",
        "coverageSummary", "coverageDetails",
        "scripts", "scriptHistory"
      },
      "data": [<snapshot>, ...]
    }

Each auxiliary block is loaded on its own; a broken artifact leaves its
block empty and never affects the others or the averages.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from ..artifacts.coverage import build_coverage_report
from ..artifacts.security import load_security_history, load_security_latest
from ..artifacts.timings import load_timing_history, summarize_timings
from ..config import PipelineConfig
from ..exceptions import ArtifactError
from ..fs import FileSystem, LocalFileSystem
from ..logging_config import get_logger
from ..snapshot.store import SnapshotStore
from ..timestamps import now_ms, to_iso
from .aggregates import compute_averages

logger = get_logger(__name__)

DashboardPayload = dict[str, Any]
T = TypeVar("T")


def _degrade(label: str, loader: Callable[[], T], default: T) -> T:
    try:
        return loader()
    except (OSError, ValueError, TypeError, KeyError, ArtifactError) as e:
        logger.warning(f"Dashboard {label} unavailable: {e}")
        return default


class DashboardCache:
    """Builds, writes and reads the dashboard cache file."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        fs: Optional[FileSystem] = None,
        store: Optional[SnapshotStore] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config or PipelineConfig()
        self.layout = self.config.layout
        self.fs = fs or LocalFileSystem()
        self.store = store or SnapshotStore(self.config, self.fs, clock=clock)
        self.clock = clock

    @property
    def path(self) -> Path:
        return self.layout.dashboard_cache

    # ── Auxiliary blocks ────────────────────────────────────────────

    def _security(self) -> Optional[dict[str, Any]]:
        latest = load_security_latest(self.fs, self.layout.security_latest, self.config.max_security_findings)
        return latest.to_dict() if latest is not None else None

    def _security_history(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in load_security_history(self.fs, self.layout.security_dir)]

    def _scripts(self) -> tuple[list[dict[str, Any]], dict[str, list[float]]]:
        scripts, series = summarize_timings(load_timing_history(self.fs, self.layout.timing_history))
        return [s.to_dict() for s in scripts], series

    def _coverage(self) -> tuple[Optional[dict[str, Any]], Optional[list[dict[str, Any]]]]:
        path = self.layout.coverage_final
        if not self.fs.exists(path):
            return None, None
        raw = json.loads(self.fs.read_text(path))
        if not isinstance(raw, dict):
            raise ValueError(f"{path.name} is not an object")
        report = build_coverage_report(raw, self.layout.root)
        return report.summary_dict(), report.details_list()

    # ── Public API ──────────────────────────────────────────────────

    def build(self) -> DashboardPayload:
        """Assemble a fresh payload from the snapshot history and artifacts."""
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            security = executor.submit(_degrade, "security", self._security, None)
            history = executor.submit(_degrade, "security history", self._security_history, [])
            scripts = executor.submit(_degrade, "script timings", self._scripts, ([], {}))
            coverage = executor.submit(_degrade, "coverage details", self._coverage, (None, None))

            snapshots = self.store.list()

        script_list, script_history = scripts.result()
        coverage_summary, coverage_details = coverage.result()

        return {
            "generatedAt": to_iso(self.clock()),
            "summary": {
                "count": len(snapshots),
                "latestTimestamp": snapshots[0].timestamp if snapshots else None,
                "averages": compute_averages(snapshots).to_dict(),
                "security": security.result(),
                "securityHistory": history.result(),
                "coverageSummary": coverage_summary,
                "coverageDetails": coverage_details,
                "scripts": script_list,
                "scriptHistory": script_history,
            },
            "data": [s.to_dict() for s in snapshots],
        }

    def write(self, payload: Optional[DashboardPayload] = None) -> DashboardPayload:
        """Replace the cache file with ``payload`` (built fresh when omitted).

        Raises:
            OSError: If the cache file cannot be written.
        """
        payload = payload if payload is not None else self.build()
        self.fs.write_text(self.path, json.dumps(payload, indent=2))
        logger.info(f"Dashboard cache written: {payload['summary']['count']} snapshots")
        return payload

    def read(self) -> Optional[DashboardPayload]:
        """Cached payload, or None when missing or malformed."""
        if not self.fs.exists(self.path):
            return None
        try:
            payload = json.loads(self.fs.read_text(self.path))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable dashboard cache: {e}")
            return None
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            logger.warning("Ignoring dashboard cache without a snapshot list")
            return None
        return payload


def load_dashboard(
    config: Optional[PipelineConfig] = None,
    refresh: bool = False,
    fs: Optional[FileSystem] = None,
) -> DashboardPayload:
    """Cached payload, rebuilt and rewritten on a miss or when ``refresh`` is set.

    A cache that cannot be written is logged; the fresh payload is still
    returned.
    """
    cache = DashboardCache(config, fs)
    if not refresh:
        cached = cache.read()
        if cached is not None:
            logger.debug("Serving dashboard from cache")
            return cached

    payload = cache.build()
    try:
        cache.write(payload)
    except OSError as e:
        logger.warning(f"Cannot write dashboard cache {cache.path}: {e}")
    return payload
