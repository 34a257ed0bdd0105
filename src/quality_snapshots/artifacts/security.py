"""Security-scan artifacts: the latest result and the per-run history."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..exceptions import ArtifactParseError
from ..fs import FileSystem
from ..logging_config import get_logger
from ..timestamps import decode_filename_timestamp, parse_iso_ms, to_iso

logger = get_logger(__name__)

LATEST_NAME = "security-latest.json"
_HISTORY_NAME = re.compile(r"^security-(.+)\.json$")


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)) and math.isfinite(value):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0
    return 0


@dataclass
class SecurityFinding:
    id: str
    file: str
    line: int
    type: str
    severity: str
    preview: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "file": self.file,
            "line": self.line,
            "type": self.type,
            "severity": self.severity,
        }
        if self.preview is not None:
            data["preview"] = self.preview
        return data


@dataclass
class SecuritySummary:
    """Latest scan: severity counts plus a capped list of findings."""

    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    passed: bool = False
    timestamp: Optional[str] = None
    findings: list[SecurityFinding] = field(default_factory=list)
    findings_truncated: bool = False
    findings_total: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "passed": self.passed,
            "timestamp": self.timestamp,
            "findings": [f.to_dict() for f in self.findings],
            "findingsTruncated": self.findings_truncated,
            "findingsTotal": self.findings_total,
        }


@dataclass
class SecurityHistoryEntry:
    timestamp: str
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
        }


def _finding(raw: Any, index: int) -> Optional[SecurityFinding]:
    if not isinstance(raw, dict):
        return None
    severity = str(raw.get("severity") or "medium")
    line = _count(raw.get("line"))
    preview = raw.get("preview")
    return SecurityFinding(
        id=str(raw.get("id") or f"{index}-{severity}-{line}"),
        file=str(raw.get("file") or ""),
        line=line,
        type=str(raw.get("type") or "unknown"),
        severity=severity,
        preview=preview if isinstance(preview, str) else None,
    )


def parse_security_latest(content: str, max_findings: int = 200) -> SecuritySummary:
    """Parse the latest scan result.

    Raises:
        ValueError: If the content is not a JSON object.
    """
    raw = json.loads(content)
    if not isinstance(raw, dict):
        raise ValueError("security result is not an object")

    raw_findings = raw.get("findings") if isinstance(raw.get("findings"), list) else []
    findings = [f for f in (_finding(item, i) for i, item in enumerate(raw_findings)) if f is not None]
    truncated = bool(raw.get("findingsTruncated")) or len(findings) > max_findings
    reported_total = _count(raw.get("findingsTotal"))
    timestamp = raw.get("timestamp") or raw.get("generatedAt")

    return SecuritySummary(
        total=_count(raw.get("total")),
        critical=_count(raw.get("critical")),
        high=_count(raw.get("high")),
        medium=_count(raw.get("medium")),
        passed=bool(raw.get("passed")),
        timestamp=timestamp if isinstance(timestamp, str) else None,
        findings=findings[:max_findings],
        findings_truncated=truncated,
        findings_total=reported_total or max(len(findings), _count(raw.get("total"))),
    )


def load_security_latest(fs: FileSystem, path: Path, max_findings: int = 200) -> Optional[SecuritySummary]:
    """Latest scan result, or None when absent or unreadable."""
    if not fs.exists(path):
        return None
    try:
        return parse_security_latest(fs.read_text(path), max_findings)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring security result {path.name}: {e}")
        return None


def _history_entry(path: Path, content: str) -> SecurityHistoryEntry:
    raw = json.loads(content)
    if not isinstance(raw, dict):
        raise ArtifactParseError(path, "security result is not an object")

    timestamp_ms = parse_iso_ms(raw.get("timestamp")) or parse_iso_ms(raw.get("generatedAt"))
    if timestamp_ms is None:
        match = _HISTORY_NAME.match(path.name)
        if match:
            timestamp_ms = decode_filename_timestamp(match.group(1))
    if timestamp_ms is None:
        raise ArtifactParseError(path, "no timestamp in content or filename")

    return SecurityHistoryEntry(
        timestamp=to_iso(timestamp_ms),
        total=_count(raw.get("total")),
        critical=_count(raw.get("critical")),
        high=_count(raw.get("high")),
        medium=_count(raw.get("medium")),
    )


def load_security_history(fs: FileSystem, directory: Path) -> list[SecurityHistoryEntry]:
    """One entry per archived scan, oldest first. Unreadable runs are skipped."""
    if not fs.is_dir(directory):
        return []
    entries: list[SecurityHistoryEntry] = []
    for name in fs.list_dir(directory):
        if name == LATEST_NAME or not _HISTORY_NAME.match(name):
            continue
        path = directory / name
        try:
            entries.append(_history_entry(path, fs.read_text(path)))
        except (OSError, ValueError, ArtifactParseError) as e:
            logger.warning(f"Skipping security history file {name}: {e}")
    entries.sort(key=lambda e: parse_iso_ms(e.timestamp) or 0)
    return entries
