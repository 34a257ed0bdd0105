"""Performance-audit (Lighthouse) artifacts: parsing and time-proximity matching.

Artifact files are named ``lighthouse_[home_|feed_]<desktop|mobile>_<ts>.json``
where ``<ts>`` is a filename-safe ISO timestamp. The body follows the
Lighthouse report format: ``categories.<id>.score`` as 0-1 floats and
``audits.<id>.numericValue`` for the web vitals.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

from ..fs import FileSystem, LocalFileSystem
from ..logging_config import get_logger
from ..snapshot.models import ScoreSet, WebVitals
from ..timestamps import decode_filename_timestamp, round_half_up

logger = get_logger(__name__)

Target = Literal["home", "feed", "any"]
DeviceClass = Literal["desktop", "mobile"]

DEFAULT_TARGET = "default"
DEFAULT_WINDOW_MS = 30 * 24 * 60 * 60 * 1000

_FILENAME = re.compile(r"^lighthouse_(?:(home|feed)_)?(mobile|desktop)_(.+)\.json$")

_CATEGORY_KEYS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "best_practices": "best-practices",
    "seo": "seo",
}


@dataclass(frozen=True)
class AuditFileInfo:
    """What a performance-audit filename encodes."""

    name: str
    target: str  # home | feed | default
    device_class: str
    file_ms: int


@dataclass(frozen=True)
class ParsedAudit:
    """Category scores (0-100) and web vitals from one valid audit."""

    performance: int
    accessibility: int
    best_practices: int
    seo: int
    lcp: float = 0
    cls: float = 0
    tbt: float = 0

    def score_set(self) -> ScoreSet:
        return ScoreSet(
            performance=self.performance,
            accessibility=self.accessibility,
            best_practices=self.best_practices,
            seo=self.seo,
        )

    def web_vitals(self) -> WebVitals:
        return WebVitals(lcp=self.lcp, cls=self.cls, tbt=self.tbt)


def parse_audit_filename(name: str) -> Optional[AuditFileInfo]:
    """Decode target, device class and timestamp; None for foreign names."""
    match = _FILENAME.match(name)
    if not match:
        return None
    target, device_class, time_text = match.groups()
    file_ms = decode_filename_timestamp(time_text)
    if file_ms is None:
        return None
    return AuditFileInfo(
        name=name,
        target=target or DEFAULT_TARGET,
        device_class=device_class,
        file_ms=file_ms,
    )


def _numeric(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def parse_audit_report(content: str) -> Optional[ParsedAudit]:
    """Parse an audit body; None when the tool failed or a score is missing.

    Scores may sit at the top level or under ``lhr`` (the node API shape).
    """
    try:
        data = json.loads(content)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    runtime_error = data.get("runtimeError")
    if isinstance(runtime_error, dict) and runtime_error.get("code"):
        return None

    lhr = data.get("lhr") if isinstance(data.get("lhr"), dict) else {}
    categories = data.get("categories") or lhr.get("categories") or {}
    audits = data.get("audits") or lhr.get("audits") or {}
    if not isinstance(categories, dict):
        return None
    if not isinstance(audits, dict):
        audits = {}

    scores: dict[str, int] = {}
    for attr, key in _CATEGORY_KEYS.items():
        entry = categories.get(key)
        raw = _numeric(entry.get("score")) if isinstance(entry, dict) else None
        if raw is None:
            return None
        scores[attr] = round_half_up(raw * 100)

    def _audit(key: str) -> float:
        entry = audits.get(key)
        value = _numeric(entry.get("numericValue")) if isinstance(entry, dict) else None
        return value or 0

    return ParsedAudit(
        lcp=_audit("largest-contentful-paint"),
        cls=_audit("cumulative-layout-shift"),
        tbt=_audit("total-blocking-time"),
        **scores,
    )


class LighthouseMatcher:
    """Select the performance audit that best belongs to a snapshot instant.

    Matching rules:
      * only the requested device class is considered;
      * a specific target (home/feed) prefers its own artifacts and falls
        back to untargeted ones, never to the other target;
      * candidates are ranked by distance to the snapshot, newest first on
        ties, and the first one that parses cleanly wins;
      * nothing farther than ``window_ms`` is ever accepted.

    The directory listing and parsed bodies are memoised per instance, so a
    matcher should live for one load pass.
    """

    def __init__(
        self,
        directory: Path,
        fs: Optional[FileSystem] = None,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> None:
        self.directory = directory
        self.fs = fs or LocalFileSystem()
        self.window_ms = window_ms
        self._candidates: Optional[list[AuditFileInfo]] = None
        self._parsed: dict[str, Optional[ParsedAudit]] = {}

    def candidates(self) -> list[AuditFileInfo]:
        if self._candidates is None:
            infos: list[AuditFileInfo] = []
            try:
                if self.fs.is_dir(self.directory):
                    for name in self.fs.list_dir(self.directory):
                        info = parse_audit_filename(name)
                        if info is not None:
                            infos.append(info)
            except OSError as e:
                logger.warning(f"Cannot list performance audits in {self.directory}: {e}")
            self._candidates = infos
        return self._candidates

    def _load(self, info: AuditFileInfo) -> Optional[ParsedAudit]:
        if info.name not in self._parsed:
            try:
                content = self.fs.read_text(self.directory / info.name)
            except OSError as e:
                logger.warning(f"Cannot read performance audit {info.name}: {e}")
                content = ""
            parsed = parse_audit_report(content) if content else None
            if parsed is None:
                logger.debug(f"Skipping invalid performance audit {info.name}")
            self._parsed[info.name] = parsed
        return self._parsed[info.name]

    def find_match(
        self,
        snapshot_ms: int,
        target: Target = "any",
        device_class: DeviceClass = "desktop",
    ) -> Optional[ParsedAudit]:
        same_device = [c for c in self.candidates() if c.device_class == device_class]
        if target == "any":
            pool = same_device
        else:
            pool = [c for c in same_device if c.target == target]
            if not pool:
                pool = [c for c in same_device if c.target == DEFAULT_TARGET]

        ranked = sorted(pool, key=lambda c: (abs(snapshot_ms - c.file_ms), -c.file_ms))
        for info in ranked:
            if abs(snapshot_ms - info.file_ms) > self.window_ms:
                break
            parsed = self._load(info)
            if parsed is not None:
                return parsed
        return None
