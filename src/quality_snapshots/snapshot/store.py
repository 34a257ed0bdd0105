"""Snapshot discovery and persistence.

``SnapshotStore.list`` merges every snapshot source into one history,
newest first:

* structured records in ``quality-snapshots/`` (any historical layout,
  decoded through ``migrate_snapshot``);
* legacy markdown reports, rebuilt into freeform snapshots on every
  load and matched against performance audits by time proximity.

The newest entry is then backfilled (see ``backfill``).
"""

from __future__ import annotations

import copy
import json
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..artifacts.bundle import compute_bundle_size
from ..artifacts.coverage import CoverageSummaryCache
from ..artifacts.legacy_report import LegacyReportSource, legacy_dedup_key, parse_legacy_report
from ..artifacts.lighthouse import LighthouseMatcher, ParsedAudit
from ..artifacts.test_results import list_test_suites
from ..config import PipelineConfig
from ..exceptions import SnapshotWriteError
from ..fs import FileSystem, LocalFileSystem
from ..health import LEGACY_CONFIDENCE, calculate_legacy_health_score
from ..logging_config import get_logger
from ..timestamps import now_ms, to_iso
from .backfill import backfill_latest
from .migrate import migrate_snapshot
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

LEGACY_VERSION = "1.0"


@dataclass(frozen=True)
class _LegacyFile:
    path: Path
    timestamp_ms: int
    key: str


class SnapshotStore:
    """Reads and writes the snapshot history of one project.

    Args:
        config: Pipeline configuration (locations, match window, workers).
        fs: Filesystem to read from; the local disk by default.
        coverage_cache: Shared coverage-summary reader, so one load pass
            parses the summary at most once.
        clock: Source of "now" for snapshots that carry no timestamp.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        fs: Optional[FileSystem] = None,
        coverage_cache: Optional[CoverageSummaryCache] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config or PipelineConfig()
        self.layout = self.config.layout
        self.fs = fs or LocalFileSystem()
        self.coverage_cache = coverage_cache or CoverageSummaryCache(self.layout.coverage_summary_paths, self.fs)
        self.clock = clock

    @property
    def legacy_sources(self) -> tuple[LegacyReportSource, ...]:
        return (
            LegacyReportSource(self.layout.audit_reports_dir, "audit_report_", ".md"),
            LegacyReportSource(self.layout.quality_reports_dir, "quality-", ".md"),
        )

    def matcher(self) -> LighthouseMatcher:
        """A fresh performance-audit matcher for one load pass."""
        return LighthouseMatcher(self.layout.lighthouse_dir, self.fs, self.config.match_window_ms)

    # ── Public API ──────────────────────────────────────────────────

    def list(self) -> list[Snapshot]:
        """Every known snapshot, newest first, with the newest backfilled."""
        self._ensure_dirs()

        snapshots = self._load_structured()
        structured_count = len(snapshots)
        snapshots.extend(self._load_legacy({s.commit_hash for s in snapshots}))

        snapshots.sort(key=lambda s: (-s.epoch_ms, s.commit_hash))
        logger.info(
            f"Loaded {len(snapshots)} snapshots "
            f"({structured_count} structured, {len(snapshots) - structured_count} from reports)"
        )

        borrowed = backfill_latest(
            snapshots,
            coverage_source=self.coverage_cache.get,
            bundle_source=lambda: compute_bundle_size(self.fs, self.layout.dist),
        )
        if borrowed:
            logger.debug(f"Latest snapshot borrowed: {', '.join(sorted(borrowed))}")
        return snapshots

    def save(self, snapshot: Snapshot) -> Path:
        """Persist one structured snapshot as ``<commitHash>-<epochMs>.json``.

        Raises:
            SnapshotWriteError: If the file cannot be written.
        """
        path = self.layout.snapshots_dir / f"{snapshot.commit_hash}-{snapshot.epoch_ms}.json"
        try:
            self.fs.make_dirs(self.layout.snapshots_dir)
            self.fs.write_text(path, json.dumps(snapshot.to_dict(), indent=2))
        except OSError as e:
            raise SnapshotWriteError(path, str(e)) from e
        logger.info(f"Saved snapshot {path.name}")
        return path

    def get_report_content(self, filename: str) -> Optional[str]:
        """Raw text of a legacy report, looked up by base name in both report directories."""
        name = re.split(r"[\\/]", filename)[-1]
        if not name:
            return None
        for source in self.legacy_sources:
            path = source.directory / name
            if not self.fs.exists(path):
                continue
            try:
                return self.fs.read_text(path)
            except OSError as e:
                logger.warning(f"Cannot read report {path}: {e}")
        return None

    # ── Structured records ──────────────────────────────────────────

    def _ensure_dirs(self) -> None:
        dirs = [self.layout.snapshots_dir, self.layout.lighthouse_dir]
        dirs.extend(source.directory for source in self.legacy_sources)
        for directory in dirs:
            try:
                self.fs.make_dirs(directory)
            except OSError as e:
                logger.warning(f"Cannot create {directory}: {e}")

    def _read_structured(self, path: Path) -> Optional[Snapshot]:
        try:
            raw = json.loads(self.fs.read_text(path))
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping unreadable snapshot {path.name}: {e}")
            return None
        snapshot = migrate_snapshot(raw, clock=self.clock)
        if snapshot is None:
            logger.warning(f"Skipping unrecognised snapshot layout in {path.name}")
        return snapshot

    def _list_names(self, directory: Path) -> list[str]:
        if not self.fs.is_dir(directory):
            return []
        try:
            return self.fs.list_dir(directory)
        except OSError as e:
            logger.warning(f"Cannot list {directory}: {e}")
            return []

    def _load_structured(self) -> list[Snapshot]:
        directory = self.layout.snapshots_dir
        paths = [directory / name for name in self._list_names(directory) if name.endswith(".json")]

        results: dict[Path, Optional[Snapshot]] = {}
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = {executor.submit(self._read_structured, path): path for path in paths}
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        # Listing order, not completion order.
        return [s for s in (results[p] for p in paths) if s is not None]

    # ── Legacy reports ──────────────────────────────────────────────

    def _legacy_files(self, known_keys: set[str]) -> list[_LegacyFile]:
        files: list[_LegacyFile] = []
        for source in self.legacy_sources:
            for name in self._list_names(source.directory):
                if not source.matches(name):
                    continue
                timestamp_ms = source.timestamp_ms(name)
                if timestamp_ms is None:
                    logger.debug(f"Skipping report with undecodable timestamp: {name}")
                    continue
                key = legacy_dedup_key(timestamp_ms)
                if key in known_keys:
                    logger.debug(f"Skipping duplicate report {name} ({key})")
                    continue
                known_keys.add(key)
                files.append(_LegacyFile(source.directory / name, timestamp_ms, key))
        return files

    def _read_text(self, path: Path) -> Optional[str]:
        try:
            return self.fs.read_text(path)
        except OSError as e:
            logger.warning(f"Skipping unreadable report {path.name}: {e}")
            return None

    def _load_legacy(self, known_keys: set[str]) -> list[Snapshot]:
        files = self._legacy_files(set(known_keys))
        if not files:
            return []

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            contents = list(executor.map(self._read_text, [f.path for f in files]))

        matcher = self.matcher()
        suites = list_test_suites(self.fs, self.layout.tests)
        snapshots = []
        for report, content in zip(files, contents):
            if content is None:
                continue
            try:
                snapshots.append(self._legacy_snapshot(report, content, matcher, suites))
            except (TypeError, ValueError, KeyError) as e:
                logger.warning(f"Skipping report {report.path.name}: {e}")
        return snapshots

    def _legacy_snapshot(
        self,
        report: _LegacyFile,
        content: str,
        matcher: LighthouseMatcher,
        suites: list[TestSuite],
    ) -> Snapshot:
        parsed = parse_legacy_report(content, report.path, self.fs, self.coverage_cache)

        feed = matcher.find_match(report.timestamp_ms, "feed", "desktop")
        home = matcher.find_match(report.timestamp_ms, "home", "desktop")
        primary: Optional[ParsedAudit] = feed or home or matcher.find_match(report.timestamp_ms, "any", "desktop")

        report_suites = copy.deepcopy(suites)
        total = sum(s.tests for s in report_suites)
        passed = sum(s.passed for s in report_suites)
        failed = sum(s.failed for s in report_suites)
        if total == 0 and parsed.total_steps > 0:
            total, passed, failed = parsed.total_steps, parsed.passed_steps, parsed.failed_steps

        timestamp = to_iso(report.timestamp_ms)
        snapshot = Snapshot(
            commit_hash=report.key,
            timestamp=timestamp,
            branch="main",
            health_score=calculate_legacy_health_score(
                parsed.pass_rate, primary.performance if primary is not None else None
            ),
            confidence_level=LEGACY_CONFIDENCE,
            source="freeform",
            report_file=report.path.name,
            version=LEGACY_VERSION,
            metrics=QualityMetrics(
                tests=TestMetrics(
                    total=total,
                    passed=passed,
                    failed=failed,
                    skipped=0,
                    duration=parsed.total_duration * 1000,
                    suites=report_suites,
                ),
                coverage=CoverageMetrics(
                    lines=parsed.coverage,
                    statements=parsed.coverage,
                    branches=0,
                    functions=0,
                ),
                performance=PerformanceMetrics(
                    lighthouse=primary.score_set() if primary is not None else ScoreSet(),
                    lighthouse_home=home.score_set() if home is not None else None,
                    lighthouse_feed=feed.score_set() if feed is not None else None,
                    web_vitals=primary.web_vitals() if primary is not None else WebVitals(),
                    bundle_size=parsed.bundle_size or 0,
                ),
                stability=StabilityMetrics(uptime=100, latency=0, last_check=timestamp, status="online"),
            ),
        )
        snapshot.refresh_data_quality()
        return snapshot
