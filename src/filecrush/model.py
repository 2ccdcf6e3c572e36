"""Plain data carried between the planner, the bucket assigner and the merger."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

ROOT_REL: Final[str] = "."

STATUS_COMPLETE: Final[str] = "complete"
STATUS_SKIPPED: Final[str] = "skipped"


@dataclass(frozen=True)
class FileEntry:
    path: Path
    size: int

    @property
    def name(self) -> str:
        return self.path.name

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "size": self.size}


@dataclass(frozen=True)
class DirectoryNode:
    """One directory as seen by a single crawl pass.

    ``files`` holds the immediate file children in crawl order; ``eligible`` and
    ``skipped`` partition it.
    """

    path: Path
    rel: str
    files: tuple[FileEntry, ...]
    children: tuple[Path, ...]
    eligible: tuple[FileEntry, ...]
    skipped: tuple[FileEntry, ...]


@dataclass(frozen=True)
class Bucket:
    rel_dir: str
    index: int
    files: tuple[FileEntry, ...]
    est_bytes: int

    @property
    def bucket_id(self) -> str:
        return f"{self.rel_dir}#{self.index}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket_id": self.bucket_id,
            "est_bytes": self.est_bytes,
            "files": [f.to_dict() for f in self.files],
        }


@dataclass(frozen=True)
class CrushPlan:
    directory: Path
    rel_dir: str
    buckets: tuple[Bucket, ...]

    def __post_init__(self) -> None:
        if not self.buckets:
            raise ValueError(f"CrushPlan without buckets: {self.rel_dir}")


@dataclass(frozen=True)
class OutputArtifact:
    bucket_id: str
    output_path: Path
    status: str
    records: int = 0
    excluded: tuple[str, ...] = field(default_factory=tuple)

    @property
    def complete(self) -> bool:
        return self.status == STATUS_COMPLETE
