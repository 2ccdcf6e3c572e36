"""Filesystem client used by the planner.

Anything with the same methods can stand in for ``LocalFileSystem`` (tests inject
fakes to simulate unreadable directories).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from filecrush.errors import CrawlError


class FileSystem(Protocol):
    def list_dir(self, path: Path) -> tuple[list[tuple[Path, int]], list[Path]]: ...

    def block_size(self, path: Path) -> int: ...


class LocalFileSystem:
    def list_dir(self, path: Path) -> tuple[list[tuple[Path, int]], list[Path]]:
        """Return ``(files, dirs)`` of the immediate children, both sorted by name.

        ``files`` carries byte sizes. Directory symlinks are not reported as dirs.
        """
        files: list[tuple[Path, int]] = []
        dirs: list[Path] = []
        try:
            with os.scandir(path) as it:
                entries = sorted(it, key=lambda e: e.name)
            for e in entries:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file():
                    files.append((Path(e.path), int(e.stat().st_size)))
        except OSError as e:
            raise CrawlError(f"cannot list directory {path}: {e}") from e
        return files, dirs

    def block_size(self, path: Path) -> int:
        try:
            st = os.stat(path)
        except OSError as e:
            raise CrawlError(f"cannot read block size of {path}: {e}") from e
        bs = int(getattr(st, "st_blksize", 0) or 0)
        return bs if bs > 0 else 4096
