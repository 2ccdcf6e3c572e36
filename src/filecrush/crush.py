"""End-to-end crush run: plan the whole tree, then dispatch the buckets."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path

from filecrush.config import CrushConfig
from filecrush.coordinator import ExecutionCoordinator, plan_satisfied
from filecrush.errors import UsageError
from filecrush.formats import FormatRegistry
from filecrush.fs import FileSystem
from filecrush.model import OutputArtifact
from filecrush.planner import DirectoryPlanner, PlanResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrushResult:
    plan: PlanResult
    artifacts: tuple[OutputArtifact, ...]

    @property
    def satisfied(self) -> bool:
        return all(plan_satisfied(p, self.artifacts) for p in self.plan.plans)


def _check_roots(input_dir: Path, output: Path) -> None:
    inp = input_dir.resolve()
    out = output.resolve()
    if out == inp or inp in out.parents:
        raise UsageError(f"output must not be inside the input tree: {output}")


def crush(
    input_dir: Path,
    output: Path,
    config: CrushConfig,
    *,
    fs: FileSystem | None = None,
    registry: FormatRegistry | None = None,
    executor: Executor | None = None,
    dry_run: bool = False,
) -> CrushResult:
    """Crush ``input_dir`` into ``output``.

    Nothing is created under ``output`` unless at least one directory has an
    eligible file; with ``dry_run`` nothing is created at all.
    """
    input_dir = Path(input_dir)
    output = Path(output)
    _check_roots(input_dir, output)

    # formats are resolved before the crawl: config errors fail fast
    coord = ExecutionCoordinator(config, executor, registry=registry)
    result = DirectoryPlanner(config, fs).survey(input_dir)

    if dry_run or not result.plans:
        if not result.plans:
            logger.info("nothing eligible under %s; no output created", input_dir)
        return CrushResult(plan=result, artifacts=())

    artifacts = coord.run(result.plans, output)
    res = CrushResult(plan=result, artifacts=tuple(artifacts))
    if not res.satisfied:
        skipped = [a.bucket_id for a in artifacts if not a.complete]
        logger.warning("%d buckets skipped by the corruption policy: %s", len(skipped), ", ".join(skipped))
    return res
