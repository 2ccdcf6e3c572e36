#!/usr/bin/env python3
"""Generate deterministic small-file trees to try filecrush on.

    python tools/gen_small_files.py --out /tmp/fc --preset text_tree
    filecrush /tmp/fc/text_tree/in /tmp/fc/text_tree/out --dry-run
"""

from __future__ import annotations

import argparse
import json
import random
import string
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Final

PRESETS: Final[set[str]] = {
    "text_tree",
    "seqrec_tree",
    "parquet_tree",
}


@dataclass(frozen=True)
class DatasetMeta:
    preset: str
    seed: int
    note: str
    dirs: int
    files_written: int
    bytes_written: int


def _rand_word(rng: random.Random, min_len: int = 3, max_len: int = 12) -> str:
    n = rng.randint(min_len, max_len)
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(n))


def _rand_line(rng: random.Random) -> str:
    return " ".join([_rand_word(rng).capitalize(), _rand_word(rng), str(rng.randint(0, 10_000_000))])


def _dir_names(rng: random.Random, depth: int, fanout: int) -> list[str]:
    # "" is the root; partition-like names, then nested levels
    out = [""]
    frontier = [""]
    for level in range(depth):
        nxt = []
        for parent in frontier:
            for i in range(rng.randint(1, fanout)):
                d = f"{parent}/p{level}={i:02d}".lstrip("/")
                out.append(d)
                nxt.append(d)
        frontier = nxt
    return out


def _generate_text(root: Path, rng: random.Random, dirs: list[str], files: int) -> tuple[int, int]:
    n = 0
    total = 0
    for d in dirs:
        for i in range(files):
            lines = rng.randint(1, 40)
            # a few large files per directory, never merged
            if i % 10 == 9:
                lines *= 200
            data = ("\n".join(_rand_line(rng) for _ in range(lines)) + "\n").encode("utf-8")
            p = root / d / f"part-{i:05d}.txt"
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
            n += 1
            total += len(data)
    return n, total


def _generate_seqrec(root: Path, rng: random.Random, dirs: list[str], files: int) -> tuple[int, int]:
    from filecrush.formats.seqrec import write_records

    n = 0
    total = 0
    for d in dirs:
        for i in range(files):
            recs = [rng.randbytes(rng.randint(0, 256)) for _ in range(rng.randint(1, 30))]
            p = root / d / f"part-{i:05d}.seqrec"
            p.parent.mkdir(parents=True, exist_ok=True)
            write_records(p, recs, compress="gzip" if i % 3 == 0 else None)
            n += 1
            total += p.stat().st_size
    return n, total


def _generate_parquet(root: Path, rng: random.Random, dirs: list[str], files: int) -> tuple[int, int]:
    import pyarrow as pa

    from filecrush.formats.parquet import write_rows

    schema = pa.schema([("id", pa.int64()), ("name", pa.string()), ("amount", pa.float64())])
    n = 0
    total = 0
    for d in dirs:
        for i in range(files):
            rows = [
                {"id": i * 1000 + j, "name": _rand_word(rng), "amount": rng.random() * 1000}
                for j in range(rng.randint(1, 50))
            ]
            p = root / d / f"part-{i:05d}.parquet"
            p.parent.mkdir(parents=True, exist_ok=True)
            write_rows(p, rows, schema)
            n += 1
            total += p.stat().st_size
    return n, total


def main() -> int:
    ap = argparse.ArgumentParser(description="Generate deterministic small-file trees.")
    ap.add_argument("--out", required=True, help="Output root directory (datasets will be created under it).")
    ap.add_argument("--preset", required=True, choices=sorted(PRESETS))
    ap.add_argument("--seed", type=int, default=1337, help="Deterministic seed.")
    ap.add_argument("--files", type=int, default=50, help="Files per directory.")
    ap.add_argument("--depth", type=int, default=2, help="Directory nesting levels below the root.")
    ap.add_argument("--fanout", type=int, default=3, help="Max subdirectories per directory.")
    args = ap.parse_args()

    out_root = Path(args.out).expanduser().resolve()
    ds_dir = out_root / args.preset / "in"
    ds_dir.mkdir(parents=True, exist_ok=True)

    rng = random.Random(args.seed)
    dirs = _dir_names(rng, args.depth, args.fanout)

    if args.preset == "text_tree":
        files, bytes_ = _generate_text(ds_dir, rng, dirs, args.files)
        note = "Line-oriented text; every tenth file is large."
    elif args.preset == "seqrec_tree":
        files, bytes_ = _generate_seqrec(ds_dir, rng, dirs, args.files)
        note = "seqrec files, a third of them gzip-compressed."
    elif args.preset == "parquet_tree":
        files, bytes_ = _generate_parquet(ds_dir, rng, dirs, args.files)
        note = "parquet files sharing one schema."
    else:
        raise AssertionError(f"unhandled preset: {args.preset}")

    meta = DatasetMeta(
        preset=args.preset,
        seed=args.seed,
        note=note,
        dirs=len(dirs),
        files_written=files,
        bytes_written=bytes_,
    )
    meta_path = out_root / args.preset / "dataset.json"
    meta_path.write_text(json.dumps(asdict(meta), ensure_ascii=False, indent=2), encoding="utf-8")

    print(f"OK: generated preset={args.preset} root={ds_dir}")
    print(f"OK: dirs={len(dirs)} files={files} bytes={bytes_}")
    print(f"OK: meta -> {meta_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
