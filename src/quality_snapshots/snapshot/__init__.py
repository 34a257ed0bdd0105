"""Snapshot records: the model, layout migration, storage and capture."""

from .models import (
    SCHEMA_VERSION,
    CoverageMetrics,
    DataQuality,
    PerformanceMetrics,
    QualityMetrics,
    ScoreSet,
    Snapshot,
    StabilityMetrics,
    TestMetrics,
    TestSuite,
    WebVitals,
    derive_data_quality,
    is_coverage_complete,
    is_lighthouse_valid,
)
from .migrate import migrate_snapshot  # isort: skip
from .backfill import backfill_latest
from .store import SnapshotStore
from .capture import CaptureResult, generate_snapshot

__all__ = [
    "SCHEMA_VERSION",
    "CoverageMetrics",
    "DataQuality",
    "PerformanceMetrics",
    "QualityMetrics",
    "ScoreSet",
    "Snapshot",
    "StabilityMetrics",
    "TestMetrics",
    "TestSuite",
    "WebVitals",
    "derive_data_quality",
    "is_coverage_complete",
    "is_lighthouse_valid",
    "migrate_snapshot",
    "backfill_latest",
    "SnapshotStore",
    "CaptureResult",
    "generate_snapshot",
]
