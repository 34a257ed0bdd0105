"""Timestamp helpers shared by artifact discovery and snapshot records.

Instants travel through the pipeline as epoch milliseconds and are
written out as ISO-8601 strings with millisecond precision and a ``Z``
suffix, the format every stored snapshot already uses.
"""

from __future__ import annotations

import math
import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Filenames cannot carry ':' so the time part is written 12-34-56[-789].
_DASHED_TIME = re.compile(r"T(\d{2})-(\d{2})-(\d{2})(?:-(\d{3}))?")
_HAS_OFFSET = re.compile(r"(Z|[+-]\d{2}:?\d{2})$")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# Instants outside datetime's year 1..9999 range cannot be formatted.
MIN_EPOCH_MS = (datetime.min.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS
MAX_EPOCH_MS = (datetime.max.replace(tzinfo=timezone.utc) - _EPOCH) // _ONE_MS


def now_ms() -> int:
    return int(time.time() * 1000)


def _in_range(epoch_ms: int) -> Optional[int]:
    return epoch_ms if MIN_EPOCH_MS <= epoch_ms <= MAX_EPOCH_MS else None


def to_iso(epoch_ms: int) -> str:
    """Format epoch milliseconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Raises ValueError for instants ``datetime`` cannot represent.
    """
    if _in_range(int(epoch_ms)) is None:
        raise ValueError(f"epoch milliseconds out of range: {epoch_ms}")
    dt = _EPOCH + timedelta(milliseconds=int(epoch_ms))
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z"
    )


def parse_iso_ms(value: Any) -> Optional[int]:
    """Parse an ISO-8601 string or an epoch-millisecond number.

    Naive strings are taken as UTC. Returns None when the value is not a
    recognisable instant or lies outside the representable date range.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _in_range(int(value)) if math.isfinite(value) else None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.isdigit():
        return _in_range(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return _in_range((dt - _EPOCH) // _ONE_MS)


def decode_filename_timestamp(text: str) -> Optional[int]:
    """Recover epoch milliseconds from the timestamp part of a filename.

    Accepts a raw decimal epoch (``1718000000000``) or an ISO-like string
    whose time segment had its colons replaced by dashes
    (``2024-06-10T06-13-20-000Z``). The dashes are restored before the
    string is parsed; a missing zone means UTC.
    """
    if not text:
        return None
    if text.isdigit():
        return _in_range(int(text))

    def _restore(match: re.Match) -> str:
        hours, minutes, seconds, millis = match.groups()
        suffix = f".{millis}" if millis else ""
        return f"T{hours}:{minutes}:{seconds}{suffix}"

    restored = _DASHED_TIME.sub(_restore, text, count=1)
    if "T" in restored and not _HAS_OFFSET.search(restored):
        restored = f"{restored}Z"
    return parse_iso_ms(restored)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def round1(value: float) -> float:
    """One decimal place, halves up; non-finite values collapse to 0."""
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return math.floor(value * 10 + 0.5) / 10
