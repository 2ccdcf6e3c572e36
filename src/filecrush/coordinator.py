"""Turn plans into independent merge tasks and run them on an executor.

Every task carries its bucket, its output path and the (immutable) config, and
nothing else: no shared state, one distinct output path per task. This is what
lets any executor run or retry tasks freely. Retries themselves, fairness and
fault tolerance belong to the executor, not here.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from filecrush.config import CrushConfig
from filecrush.errors import UsageError
from filecrush.formats import FormatRegistry, default_registry
from filecrush.merger import Merger
from filecrush.model import ROOT_REL, Bucket, CrushPlan, OutputArtifact

logger = logging.getLogger(__name__)

OUTPUT_PREFIX = "crushed-"


def output_path_for(
    output_root: Path, bucket: Bucket, extension: str, *, stand_alone: bool = False
) -> Path:
    """Mirror the input layout: ``<root>/<rel_dir>/crushed-<index>.<ext>``.

    In stand-alone mode the output root is the artifact itself.
    """
    root = Path(output_root)
    if stand_alone:
        return root
    base = root if bucket.rel_dir == ROOT_REL else root / bucket.rel_dir
    return base / f"{OUTPUT_PREFIX}{bucket.index:05d}{extension}"


@dataclass(frozen=True)
class MergeTask:
    bucket: Bucket
    output_path: Path
    config: CrushConfig
    registry: FormatRegistry | None = field(default=None, compare=False, repr=False)

    def run(self) -> OutputArtifact:
        return Merger(self.config, self.registry).merge(self.bucket, self.output_path)


def plan_satisfied(plan: CrushPlan, artifacts: Iterable[OutputArtifact]) -> bool:
    done = {a.bucket_id for a in artifacts if a.complete}
    return all(b.bucket_id in done for b in plan.buckets)


def _check_layout(tasks: Sequence[MergeTask]) -> None:
    """Reject runs where an artifact would land on a mirrored directory path.

    Happens when an input directory has a subdirectory named like an artifact
    (``crushed-00000.txt``) next to eligible files.
    """
    outputs = [t.output_path for t in tasks]
    dirs = {d for p in outputs for d in p.parents}
    seen: set[Path] = set()
    for p in outputs:
        if p in dirs or p in seen:
            raise UsageError(
                f"output name clash: {p} is needed both as an artifact and as a directory; "
                f"rename input entries starting with '{OUTPUT_PREFIX}'"
            )
        seen.add(p)


def _prune_skipped(artifacts: Sequence[OutputArtifact], root: Path, *, keep_root: bool) -> None:
    # skipped buckets write nothing: drop the (now empty) mirrored directories they created
    for a in artifacts:
        if a.complete:
            continue
        d = a.output_path.parent
        while d == root or root in d.parents:
            if d == root and keep_root:
                break
            try:
                d.rmdir()
            except OSError:
                break
            d = d.parent


class ExecutionCoordinator:
    def __init__(
        self,
        config: CrushConfig,
        executor: Executor | None = None,
        *,
        registry: FormatRegistry | None = None,
    ) -> None:
        self.config = config
        self.executor = executor
        self.registry = registry if registry is not None else default_registry()
        # resolving the formats here surfaces config errors before any dispatch
        _, dst = self.registry.pair(
            config.input_format,
            config.resolved_output_format,
            compress=config.compress,
            schema_file=config.schema_file,
        )
        self.extension = dst.extension

    def tasks_for(self, plans: Sequence[CrushPlan], output_root: Path) -> list[MergeTask]:
        tasks: list[MergeTask] = []
        for plan in plans:
            for b in plan.buckets:
                tasks.append(
                    MergeTask(
                        bucket=b,
                        output_path=output_path_for(
                            output_root, b, self.extension, stand_alone=self.config.stand_alone
                        ),
                        config=self.config,
                        registry=self.registry,
                    )
                )
        _check_layout(tasks)
        return tasks

    def run(self, plans: Sequence[CrushPlan], output_root: Path) -> list[OutputArtifact]:
        """Run every bucket of every plan; return artifacts in task order.

        Fail-fast: the first failing task cancels whatever has not started yet
        and its error is re-raised.
        """
        tasks = self.tasks_for(plans, output_root)
        if not tasks:
            return []

        root = Path(output_root)
        root_existed = root.exists()
        jobs = int(self.config.jobs)
        logger.info("dispatching %d merge tasks (jobs=%d)", len(tasks), jobs)

        if self.executor is None and jobs <= 1:
            artifacts = [t.run() for t in tasks]
        elif self.executor is not None:
            artifacts = self._run_on(self.executor, tasks)
        else:
            with ThreadPoolExecutor(max_workers=jobs) as ex:
                artifacts = self._run_on(ex, tasks)

        _prune_skipped(artifacts, root, keep_root=root_existed)
        return artifacts

    @staticmethod
    def _run_on(ex: Executor, tasks: Sequence[MergeTask]) -> list[OutputArtifact]:
        futs: list[Future[OutputArtifact]] = [ex.submit(t.run) for t in tasks]
        done, pending = wait(futs, return_when=FIRST_EXCEPTION)
        failed = [f for f in futs if f in done and not f.cancelled() and f.exception() is not None]
        if failed:
            for f in pending:
                f.cancel()
            # first failure in task order, for a stable message
            raise failed[0].exception()  # type: ignore[misc]
        return [f.result() for f in futs]
