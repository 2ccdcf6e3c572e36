"""Directory crawl + classification.

Every directory under the input root is visited once, with an explicit stack
(no recursion). For each directory only its immediate files are classified:

  eligible  size < threshold * block_size   -> merged
  skipped   everything else                 -> left in place, never read

Merging never crosses a directory boundary, so each directory yields its own
plan (or nothing, when it has no eligible file).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from filecrush.buckets import assign_buckets, single_bucket
from filecrush.config import CrushConfig
from filecrush.errors import CrawlError, UsageError
from filecrush.fs import FileSystem, LocalFileSystem
from filecrush.model import ROOT_REL, CrushPlan, DirectoryNode, FileEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirSummary:
    rel: str
    eligible: int
    skipped: int


@dataclass(frozen=True)
class PlanResult:
    block_size: int
    plans: tuple[CrushPlan, ...]
    dirs: tuple[DirSummary, ...]

    @property
    def eligible(self) -> int:
        return sum(d.eligible for d in self.dirs)

    @property
    def skipped(self) -> int:
        return sum(d.skipped for d in self.dirs)

    @property
    def bucket_count(self) -> int:
        return sum(len(p.buckets) for p in self.plans)


def _rel(root: Path, p: Path) -> str:
    rel = p.relative_to(root).as_posix()
    return rel if rel else ROOT_REL


class DirectoryPlanner:
    def __init__(self, config: CrushConfig, fs: FileSystem | None = None) -> None:
        self.config = config
        self.fs: FileSystem = fs if fs is not None else LocalFileSystem()
        self._ignore = config.ignore_pattern()

    def block_size(self, input_root: Path) -> int:
        if self.config.block_size is not None:
            return int(self.config.block_size)
        return int(self.fs.block_size(input_root))

    def classify(self, directory: Path, rel: str, block_size: int) -> DirectoryNode:
        raw_files, dirs = self.fs.list_dir(directory)
        cutoff = self.config.eligibility_cutoff(block_size)

        files: list[FileEntry] = []
        eligible: list[FileEntry] = []
        skipped: list[FileEntry] = []
        for path, size in raw_files:
            fe = FileEntry(path=Path(path), size=int(size))
            files.append(fe)
            if self._ignore is not None and self._ignore.search(fe.name):
                skipped.append(fe)
            elif fe.size < cutoff:
                eligible.append(fe)
            else:
                skipped.append(fe)

        logger.debug(
            "classified %s: %d eligible, %d skipped, %d subdirs",
            rel,
            len(eligible),
            len(skipped),
            len(dirs),
        )
        return DirectoryNode(
            path=directory,
            rel=rel,
            files=tuple(files),
            children=tuple(Path(d) for d in dirs),
            eligible=tuple(eligible),
            skipped=tuple(skipped),
        )

    def iter_nodes(self, input_root: Path, *, block_size: int | None = None) -> Iterator[DirectoryNode]:
        """Yield one DirectoryNode per directory, depth-first in name order."""
        root = Path(input_root)
        if not root.is_dir():
            raise CrawlError(f"input is not a directory: {root}")
        bs = int(block_size) if block_size is not None else self.block_size(root)

        stack: list[Path] = [root]
        while stack:
            d = stack.pop()
            node = self.classify(d, _rel(root, d), bs)
            yield node
            if self.config.stand_alone:
                continue
            # reversed: children pop in name order
            stack.extend(reversed(node.children))

    def plan_node(self, node: DirectoryNode, block_size: int) -> CrushPlan | None:
        if not node.eligible:
            return None
        if self.config.stand_alone:
            buckets = single_bucket(node.eligible, rel_dir=node.rel)
        else:
            buckets = assign_buckets(
                node.eligible, self.config.bucket_ceiling(block_size), rel_dir=node.rel
            )
        return CrushPlan(directory=node.path, rel_dir=node.rel, buckets=tuple(buckets))

    def survey(self, input_root: Path) -> PlanResult:
        """Crawl the whole tree; return every directory plan (crawl order) plus counts.

        Completes before anything is dispatched: bucket membership needs the full
        eligible list of a directory.
        """
        root = Path(input_root)
        if not root.is_dir():
            raise CrawlError(f"input is not a directory: {root}")
        bs = self.block_size(root)
        if bs <= 0:
            raise UsageError(f"block size must be > 0: {bs}")

        plans: list[CrushPlan] = []
        dirs: list[DirSummary] = []
        for node in self.iter_nodes(root, block_size=bs):
            dirs.append(
                DirSummary(rel=node.rel, eligible=len(node.eligible), skipped=len(node.skipped))
            )
            p = self.plan_node(node, bs)
            if p is not None:
                plans.append(p)

        res = PlanResult(block_size=bs, plans=tuple(plans), dirs=tuple(dirs))
        logger.info(
            "planned %s: %d dirs, %d eligible, %d skipped, %d plans, %d buckets (block size %d)",
            root,
            len(dirs),
            res.eligible,
            res.skipped,
            len(plans),
            res.bucket_count,
            bs,
        )
        return res

    def plan(self, input_root: Path) -> list[CrushPlan]:
        return list(self.survey(input_root).plans)
