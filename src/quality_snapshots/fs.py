"""Filesystem access used by the pipeline.

Every directory listing, read and size walk goes through a ``FileSystem``
so matching and aggregation can be exercised against synthetic file
trees. ``LocalFileSystem`` is the only production implementation.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator, Protocol, Tuple


class FileSystem(Protocol):
    """Minimal filesystem surface the pipeline depends on."""

    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def list_dir(self, path: Path) -> list[str]:
        """Names of the regular files directly inside ``path``, sorted."""
        ...

    def read_text(self, path: Path) -> str: ...

    def write_text(self, path: Path, content: str) -> None:
        """Replace ``path`` with ``content`` in one step."""
        ...

    def make_dirs(self, path: Path) -> None: ...

    def walk_files(self, root: Path) -> Iterator[Tuple[Path, int]]:
        """Yield ``(path, size_in_bytes)`` for every file below ``root``."""
        ...

    def mtime_ns(self, path: Path) -> int: ...


class LocalFileSystem:
    """``FileSystem`` backed by the real disk."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def list_dir(self, path: Path) -> list[str]:
        return sorted(entry.name for entry in path.iterdir() if entry.is_file())

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def make_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def walk_files(self, root: Path) -> Iterator[Tuple[Path, int]]:
        stack = [root]
        while stack:
            current = stack.pop()
            with os.scandir(current) as entries:
                for entry in entries:
                    if entry.is_dir(follow_symlinks=False):
                        stack.append(Path(entry.path))
                    elif entry.is_file():
                        yield Path(entry.path), entry.stat().st_size

    def mtime_ns(self, path: Path) -> int:
        return path.stat().st_mtime_ns
