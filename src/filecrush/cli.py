"""filecrush CLI.

This is the stable CLI entrypoint (console-script: ``filecrush``).

    filecrush [options] <input-dir> <output>

UX policy:
  - Flags win over ``--config``, which wins over FILECRUSH_* env vars.
  - Nothing eligible is a success: exit 0, output not created.
  - Errors print one ``[filecrush] ...`` line on stderr and map to the stable
    exit codes in ``filecrush.errors`` (``--debug`` re-raises instead).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from filecrush import compression
from filecrush.config import ON_CORRUPT_POLICIES, build_config
from filecrush.crush import crush
from filecrush.errors import EXIT_GENERIC, EXIT_OK, CrushError
from filecrush.formats import default_registry
from filecrush.report import build_report, render_report, write_report

LOG_FORMAT = "[filecrush] %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    formats = ", ".join(default_registry().names())
    p = argparse.ArgumentParser(
        prog="filecrush",
        description="Merge small files into block-sized files, directory by directory.",
    )
    p.add_argument("input_dir", type=Path)
    p.add_argument(
        "output",
        type=Path,
        help="Output root (mirrors the input tree); with --stand-alone, the output file",
    )
    p.add_argument("--input-format", default=None, help=f"Record format of inputs ({formats}; default: text)")
    p.add_argument("--output-format", default=None, help="Record format of outputs (default: the input format)")
    p.add_argument(
        "--compress",
        default=None,
        help=f"Output compression ({', '.join(compression.names())}; parquet also: snappy)",
    )
    p.add_argument(
        "--schema-file",
        type=Path,
        default=None,
        help="parquet: take the output schema from this file (default: first file of each bucket)",
    )
    p.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Files below threshold * block size are merged (default: 0.75)",
    )
    p.add_argument(
        "--max-file-blocks",
        type=int,
        default=None,
        help="Bucket ceiling, in blocks (default: 8)",
    )
    p.add_argument(
        "--block-size",
        type=int,
        default=None,
        help="Override the storage block size in bytes (default: from the filesystem)",
    )
    p.add_argument("--ignore-regex", default=None, help="File names matching this regex are never merged")
    p.add_argument(
        "--on-corrupt",
        choices=list(ON_CORRUPT_POLICIES),
        default=None,
        help="What to do with a file its format cannot read (default: fail)",
    )
    p.add_argument("--jobs", type=int, default=None, help="Parallel merge tasks (default: 1)")
    p.add_argument(
        "--stand-alone",
        action="store_true",
        default=None,
        help="Crush only the input directory's own files into the single file <output>",
    )
    p.add_argument("--dry-run", action="store_true", help="Print the plan as JSON and write nothing")
    p.add_argument("--report", type=Path, default=None, help="Write the run report (JSON) to this path")
    p.add_argument(
        "--config",
        default=None,
        help="Config JSON (@file.json or inline JSON, spec filecrush.crush_config.v1)",
    )
    p.add_argument("--verbose", action="store_true", help="Log progress")
    p.add_argument("--debug", action="store_true", help="Debug logging; show stack traces on errors")
    return p


def _setup_logging(*, verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def _run(ns: argparse.Namespace) -> int:
    config = build_config(
        {
            "input_format": ns.input_format,
            "output_format": ns.output_format,
            "compress": ns.compress,
            "schema_file": ns.schema_file,
            "threshold": ns.threshold,
            "max_file_blocks": ns.max_file_blocks,
            "block_size": ns.block_size,
            "ignore_regex": ns.ignore_regex,
            "on_corrupt": ns.on_corrupt,
            "jobs": ns.jobs,
            "stand_alone": ns.stand_alone,
        },
        config_arg=ns.config,
    )

    res = crush(ns.input_dir, ns.output, config, dry_run=bool(ns.dry_run))

    if ns.dry_run or ns.report is not None:
        report = build_report(
            config=config,
            result=res.plan,
            output_root=ns.output,
            artifacts=None if ns.dry_run else res.artifacts,
        )
        if ns.dry_run:
            sys.stdout.write(render_report(report))
        if ns.report is not None:
            write_report(ns.report, report)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    p = build_parser()
    ns = p.parse_args(argv)
    _setup_logging(verbose=bool(ns.verbose), debug=bool(ns.debug))

    try:
        return _run(ns)
    except SystemExit:
        raise
    except CrushError as e:
        if ns.debug:
            raise
        print(f"[filecrush] {e}", file=sys.stderr)
        return int(getattr(e, "exit_code", EXIT_GENERIC) or EXIT_GENERIC)
    except Exception as e:
        if ns.debug:
            raise
        print(f"[filecrush] error: {e}", file=sys.stderr)
        return EXIT_GENERIC


if __name__ == "__main__":
    raise SystemExit(main())
