"""Shared test fixtures for Quality Snapshots tests."""

import json
from pathlib import Path
from typing import Iterator, Optional, Tuple

import pytest

from quality_snapshots.config import PipelineConfig
from quality_snapshots.snapshot.models import (
    CoverageMetrics,
    PerformanceMetrics,
    QualityMetrics,
    ScoreSet,
    Snapshot,
    StabilityMetrics,
    TestMetrics,
    WebVitals,
)

PROJECT_ROOT = Path("/project")


class MemoryFileSystem:
    """In-memory ``FileSystem`` for synthetic project trees."""

    def __init__(self) -> None:
        self.files: dict[Path, str] = {}
        self.dirs: set[Path] = set()
        self.unreadable: set[Path] = set()
        self.read_only = False
        self.reads: list[Path] = []
        self._mtimes: dict[Path, int] = {}
        self._tick = 0

    def add(self, path: Path, content: str) -> Path:
        path = Path(path)
        self.files[path] = content
        self._tick += 1
        self._mtimes[path] = self._tick
        return path

    def add_json(self, path: Path, data) -> Path:
        return self.add(path, json.dumps(data))

    def exists(self, path: Path) -> bool:
        return path in self.files or self.is_dir(path)

    def is_dir(self, path: Path) -> bool:
        if path in self.dirs:
            return True
        return any(path in f.parents for f in self.files)

    def list_dir(self, path: Path) -> list[str]:
        return sorted(f.name for f in self.files if f.parent == path)

    def read_text(self, path: Path) -> str:
        self.reads.append(path)
        if path in self.unreadable:
            raise PermissionError(f"permission denied: {path}")
        if path not in self.files:
            raise FileNotFoundError(str(path))
        return self.files[path]

    def write_text(self, path: Path, content: str) -> None:
        if self.read_only:
            raise PermissionError(f"read-only filesystem: {path}")
        self.add(path, content)

    def make_dirs(self, path: Path) -> None:
        if self.read_only:
            raise PermissionError(f"read-only filesystem: {path}")
        self.dirs.add(path)

    def walk_files(self, root: Path) -> Iterator[Tuple[Path, int]]:
        for path, content in sorted(self.files.items()):
            if root in path.parents:
                yield path, len(content.encode("utf-8"))

    def mtime_ns(self, path: Path) -> int:
        if path not in self.files:
            raise FileNotFoundError(str(path))
        return self._mtimes[path]


def lighthouse_body(
    performance: Optional[float] = 0.9,
    accessibility: float = 0.95,
    best_practices: float = 1.0,
    seo: float = 0.9,
    lcp: float = 1200,
    cls: float = 0.01,
    tbt: float = 50,
    runtime_error: Optional[str] = None,
) -> str:
    """A minimal Lighthouse report body."""
    categories = {
        "accessibility": {"score": accessibility},
        "best-practices": {"score": best_practices},
        "seo": {"score": seo},
    }
    if performance is not None:
        categories["performance"] = {"score": performance}
    body = {
        "categories": categories,
        "audits": {
            "largest-contentful-paint": {"numericValue": lcp},
            "cumulative-layout-shift": {"numericValue": cls},
            "total-blocking-time": {"numericValue": tbt},
        },
    }
    if runtime_error:
        body["runtimeError"] = {"code": runtime_error, "message": "Chrome did not respond"}
    return json.dumps(body)


def make_snapshot(
    commit: str = "abc1234",
    timestamp: str = "2024-06-10T00:00:00.000Z",
    performance: float = 0,
    lines: float = 0,
    statements: Optional[float] = None,
    branches: float = 0,
    functions: float = 0,
    bundle_size: float = 0,
    total: int = 10,
    passed: int = 10,
    failed: int = 0,
    health_score: int = 80,
) -> Snapshot:
    snapshot = Snapshot(
        commit_hash=commit,
        timestamp=timestamp,
        health_score=health_score,
        confidence_level="high",
        metrics=QualityMetrics(
            tests=TestMetrics(total=total, passed=passed, failed=failed),
            coverage=CoverageMetrics(
                lines=lines,
                statements=lines if statements is None else statements,
                branches=branches,
                functions=functions,
            ),
            performance=PerformanceMetrics(
                lighthouse=ScoreSet(performance=performance, accessibility=90, best_practices=95, seo=100)
                if performance
                else ScoreSet(),
                web_vitals=WebVitals(lcp=1500, cls=0.02, tbt=80) if performance else WebVitals(),
                bundle_size=bundle_size,
            ),
            stability=StabilityMetrics(uptime=100, last_check=timestamp),
        ),
    )
    snapshot.refresh_data_quality()
    return snapshot


@pytest.fixture
def memfs():
    """Empty in-memory filesystem."""
    return MemoryFileSystem()


@pytest.fixture
def config():
    """Pipeline configuration rooted at the synthetic project."""
    return PipelineConfig(root_dir=str(PROJECT_ROOT))


@pytest.fixture
def layout(config):
    return config.layout


@pytest.fixture
def write_snapshot(memfs, layout):
    """Store a snapshot (or raw dict) in the structured snapshot directory."""

    def _write(snapshot, name: Optional[str] = None) -> Path:
        data = snapshot.to_dict() if isinstance(snapshot, Snapshot) else snapshot
        if name is None:
            name = f"{snapshot.commit_hash}-{snapshot.epoch_ms}.json"
        return memfs.add_json(layout.snapshots_dir / name, data)

    return _write
