"""Exception hierarchy for Quality Snapshots."""

from .artifacts import ArtifactError, ArtifactParseError, SnapshotWriteError
from .base import QualitySnapshotsError
from .config import ConfigurationError, InvalidConfigError

__all__ = [
    "QualitySnapshotsError",
    "ArtifactError",
    "ArtifactParseError",
    "SnapshotWriteError",
    "ConfigurationError",
    "InvalidConfigError",
]
