"""Bundle size of the build output directory."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..fs import FileSystem
from ..logging_config import get_logger

logger = get_logger(__name__)

SCRIPT_SUFFIX = ".js"
STYLESHEET_SUFFIX = ".css"


def compute_bundle_size(fs: FileSystem, dist: Path) -> Optional[float]:
    """Total KB of script and stylesheet files below ``dist``.

    Returns None when the directory is missing, unreadable, or holds no
    scripts or stylesheets.
    """
    if not fs.is_dir(dist):
        return None

    js_kb = 0.0
    css_kb = 0.0
    try:
        for path, size in fs.walk_files(dist):
            suffix = path.suffix.lower()
            if suffix == SCRIPT_SUFFIX:
                js_kb += size / 1024
            elif suffix == STYLESHEET_SUFFIX:
                css_kb += size / 1024
    except OSError as e:
        logger.warning(f"Cannot measure bundle in {dist}: {e}")
        return None

    total = js_kb + css_kb
    logger.debug(f"Bundle: {js_kb:.2f} KB js + {css_kb:.2f} KB css")
    return round(total, 2) if total > 0 else None
