"""Per-script execution-time history.

The history file maps a script id to its most recent durations in
milliseconds, oldest first::

    {"test:core": [41230, 39870], "test:core:ci": [39870]}
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..fs import FileSystem
from ..logging_config import get_logger
from ..timestamps import round1

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True)
class ScriptTiming:
    id: str
    runs: int
    avg_seconds: float
    last_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "runs": self.runs,
            "avgSeconds": self.avg_seconds,
            "lastSeconds": self.last_seconds,
        }


def _ms(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)) and math.isfinite(value):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    return 0.0


def _runs(entries: Any) -> list[float]:
    return [_ms(v) for v in entries] if isinstance(entries, list) else []


def summarize_timings(history: dict[str, Any]) -> tuple[list[ScriptTiming], dict[str, list[float]]]:
    """Per-script run count, mean and latest duration, plus each run in seconds."""
    scripts: list[ScriptTiming] = []
    series: dict[str, list[float]] = {}
    for script_id, entries in history.items():
        runs = _runs(entries)
        avg_ms = sum(runs) / len(runs) if runs else 0
        last_ms = runs[-1] if runs else 0
        scripts.append(
            ScriptTiming(
                id=script_id,
                runs=len(runs),
                avg_seconds=round1(avg_ms / 1000),
                last_seconds=round1(last_ms / 1000),
            )
        )
        series[script_id] = [round1(ms / 1000) for ms in runs]
    return scripts, series


def load_timing_history(fs: FileSystem, path: Path) -> dict[str, Any]:
    """Raw history mapping; empty when the file is missing.

    Raises:
        ValueError: If the file is not a JSON object.
    """
    if not fs.exists(path):
        return {}
    data = json.loads(fs.read_text(path))
    if not isinstance(data, dict):
        raise ValueError("execution history is not an object")
    return data


def _history_key(script: str, mode: Optional[str]) -> str:
    mode = (mode or "").strip()
    return f"{script}:{mode}" if mode else script


def record_execution_time(
    fs: FileSystem,
    path: Path,
    script: str,
    duration_ms: float,
    mode: Optional[str] = None,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> dict[str, list[float]]:
    """Append one run under the script id and, with a mode, under ``script:mode``.

    Only the newest ``limit`` runs are kept per key. An unreadable history
    file is started over.
    """
    try:
        history = load_timing_history(fs, path)
    except (OSError, ValueError) as e:
        logger.warning(f"Starting a new execution history, cannot read {path.name}: {e}")
        history = {}

    for key in dict.fromkeys((script, _history_key(script, mode))):
        runs = history.get(key) if isinstance(history.get(key), list) else []
        runs.append(duration_ms)
        history[key] = runs[-limit:]

    fs.write_text(path, json.dumps(history, indent=2))
    logger.debug(f"Recorded {duration_ms} ms for {_history_key(script, mode)}")
    return history
