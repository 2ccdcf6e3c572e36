"""Aggregated run report (``--dry-run`` and ``--report``).

Determinism note:
Two runs over the same unchanged tree must produce the same report, so we DO NOT
embed:
- timestamps
- absolute paths (input/output roots); output paths are relative to the output root
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Final, Sequence

from filecrush.config import CrushConfig
from filecrush.model import OutputArtifact
from filecrush.planner import PlanResult

REPORT_SPEC: Final[str] = "filecrush.run_report.v1"


def _bytes_h(n: int) -> str:
    if n < 0:
        return str(n)
    units = ["B", "KiB", "MiB", "GiB"]
    f = float(n)
    u = 0
    while f >= 1024.0 and u < len(units) - 1:
        f /= 1024.0
        u += 1
    return f"{int(f)} {units[u]}" if u == 0 else f"{f:.2f} {units[u]}"


def _rel_out(output_root: Path, p: Path) -> str:
    try:
        rel = Path(p).relative_to(output_root).as_posix()
    except ValueError:
        return Path(p).name
    return rel if rel != "." else Path(p).name


def build_report(
    *,
    config: CrushConfig,
    result: PlanResult,
    output_root: Path,
    artifacts: Sequence[OutputArtifact] | None = None,
) -> dict[str, Any]:
    """Build a deterministic report of the plan (and, after a run, its artifacts)."""
    by_bucket = {a.bucket_id: a for a in artifacts or ()}

    dirs: list[dict[str, Any]] = []
    plans_by_rel = {p.rel_dir: p for p in result.plans}
    for d in result.dirs:
        row: dict[str, Any] = {"rel": d.rel, "eligible": d.eligible, "skipped": d.skipped}
        plan = plans_by_rel.get(d.rel)
        if plan is not None:
            buckets = []
            for b in plan.buckets:
                brow = b.to_dict()
                a = by_bucket.get(b.bucket_id)
                if a is not None:
                    brow["output"] = _rel_out(output_root, a.output_path)
                    brow["status"] = a.status
                    brow["records"] = a.records
                    if a.excluded:
                        brow["excluded"] = list(a.excluded)
                buckets.append(brow)
            row["buckets"] = buckets
        dirs.append(row)

    est_total = sum(b.est_bytes for p in result.plans for b in p.buckets)
    summary: dict[str, Any] = {
        "dirs": len(result.dirs),
        "eligible": result.eligible,
        "skipped": result.skipped,
        "plans": len(result.plans),
        "buckets": result.bucket_count,
        "est_bytes": est_total,
        "est_bytes_h": _bytes_h(est_total),
    }
    if artifacts is not None:
        summary["complete"] = sum(1 for a in artifacts if a.complete)
        summary["records"] = sum(a.records for a in artifacts)

    cfg = config.to_dict()
    cfg.pop("schema_file", None)  # a path: run-specific
    return {
        "spec": REPORT_SPEC,
        "block_size": result.block_size,
        "config": cfg,
        "summary": summary,
        "dirs": dirs,
    }


def render_report(report: dict[str, Any]) -> str:
    return json.dumps(report, ensure_ascii=False, indent=2, sort_keys=False) + "\n"


def write_report(path: Path, report: dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(render_report(report), encoding="utf-8")
