"""
Quality Snapshots - historical quality records for a web project

Discovers structured snapshots, legacy free-text reports and third-party
audit artifacts, normalizes them into one canonical snapshot schema,
scores each point in time and aggregates the history into a single
cached dashboard payload.
"""

__version__ = "0.3.0"

# snapshot first: its models must exist before the artifact readers load
from .snapshot import Snapshot, SnapshotStore, migrate_snapshot  # isort: skip
from .dashboard import DashboardCache, load_dashboard
from .health import calculate_health_score, calculate_legacy_health_score

__all__ = [
    "DashboardCache",
    "load_dashboard",
    "calculate_health_score",
    "calculate_legacy_health_score",
    "Snapshot",
    "SnapshotStore",
    "migrate_snapshot",
]
