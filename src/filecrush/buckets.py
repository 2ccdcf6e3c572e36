from __future__ import annotations

from typing import Sequence

from filecrush.errors import UsageError
from filecrush.model import ROOT_REL, Bucket, FileEntry


def assign_buckets(
    files: Sequence[FileEntry], ceiling: int, *, rel_dir: str = ROOT_REL
) -> list[Bucket]:
    """Partition one directory's eligible files into size-bounded buckets.

    Single greedy left-to-right pass: a file joins the current bucket while the
    running total stays <= ceiling, otherwise it opens the next bucket. A file
    larger than the ceiling ends up alone in its bucket. Input order is kept
    everywhere, so the same input always yields the same partition.
    """
    if int(ceiling) <= 0:
        raise UsageError(f"bucket ceiling must be > 0: {ceiling}")

    buckets: list[Bucket] = []
    cur: list[FileEntry] = []
    total = 0

    def _close() -> None:
        buckets.append(
            Bucket(rel_dir=rel_dir, index=len(buckets), files=tuple(cur), est_bytes=total)
        )

    for f in files:
        if cur and total + f.size > ceiling:
            _close()
            cur = []
            total = 0
        cur.append(f)
        total += f.size

    if cur:
        _close()
    return buckets


def single_bucket(files: Sequence[FileEntry], *, rel_dir: str = ROOT_REL) -> list[Bucket]:
    """Stand-alone mode: everything in one bucket, no ceiling."""
    if not files:
        return []
    return [
        Bucket(
            rel_dir=rel_dir,
            index=0,
            files=tuple(files),
            est_bytes=sum(f.size for f in files),
        )
    ]
