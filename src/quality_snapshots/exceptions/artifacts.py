"""Artifact exceptions: unreadable inputs and failed snapshot writes."""

from pathlib import Path
from typing import Optional

from .base import QualitySnapshotsError


class ArtifactError(QualitySnapshotsError):
    """Base class for errors tied to one on-disk artifact."""

    def __init__(self, message: str, path: Optional[Path] = None, reason: str = ""):
        details = {}
        if path is not None:
            details["path"] = str(path)
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details)
        self.path = path
        self.reason = reason


class ArtifactParseError(ArtifactError):
    """Raised when an artifact exists but its content cannot be parsed."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot parse artifact: {path.name}", path=path, reason=reason)


class SnapshotWriteError(ArtifactError):
    """Raised when a freshly computed snapshot cannot be persisted.

    This is the only fatal error of the pipeline; the read path never
    raises it.
    """

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot write snapshot: {path}", path=path, reason=reason)
