"""Typed errors for filecrush.

Single source of truth for exit codes lives here.

Policy:
- Errors are small and boring.
- The CLI maps errors to stable exit codes (see EXIT_* constants).
- docs/exit_codes.md is generated from this module (scripts/gen_exit_codes_md.py).
"""

from __future__ import annotations

from dataclasses import dataclass

# -------------------------
# Exit codes (single source)
# -------------------------

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_GENERIC = 10
EXIT_CRAWL = 11
EXIT_CODEC = 12
EXIT_OUTPUT_WRITE = 13


@dataclass(frozen=True, slots=True)
class ExitCodeInfo:
    code: int
    name: str
    description: str


EXIT_CODES: tuple[ExitCodeInfo, ...] = (
    ExitCodeInfo(EXIT_OK, "OK", "Success (including: nothing eligible, no output created)"),
    ExitCodeInfo(EXIT_USAGE, "USAGE", "Usage/config error (invalid args, unknown format, bad config file)"),
    ExitCodeInfo(EXIT_GENERIC, "GENERIC", "Generic failure (unexpected error)"),
    ExitCodeInfo(EXIT_CRAWL, "CRAWL", "A directory could not be listed or a file could not be stat'ed"),
    ExitCodeInfo(EXIT_CODEC, "CODEC", "A source file could not be parsed by its declared format"),
    ExitCodeInfo(EXIT_OUTPUT_WRITE, "OUTPUT_WRITE", "Output could not be written (permissions, quota, disk)"),
)

_EXIT_CODE_BY_CODE: dict[int, ExitCodeInfo] = {e.code: e for e in EXIT_CODES}


def exit_code_info(code: int) -> ExitCodeInfo | None:
    return _EXIT_CODE_BY_CODE.get(int(code))


def render_exit_codes_markdown() -> str:
    """Render docs/exit_codes.md content."""
    lines: list[str] = []
    lines.append("# Exit codes\n")
    lines.append("> GENERATED FILE: do not edit manually.\n")
    lines.append("> Source of truth: `src/filecrush/errors.py` (EXIT_CODES).\n")
    lines.append("> Regenerate: `python scripts/gen_exit_codes_md.py`.\n\n")
    lines.append("These are the CLI exit codes you can rely on.\n\n")
    lines.append("| Code | Name | Meaning |\n")
    lines.append("|---:|---|---|\n")
    for e in sorted(EXIT_CODES, key=lambda x: x.code):
        lines.append(f"| {e.code} | `{e.name}` | {e.description} |\n")
    lines.append("\n## Notes\n")
    lines.append("- All internal errors extend `CrushError` and carry an `exit_code`.\n")
    lines.append("- `--debug` re-raises errors to show full stack traces.\n")
    lines.append(
        "- After a non-zero exit, partially written output is not trusted: rerun the whole invocation.\n"
    )
    return "".join(lines)


# ---------------
# Typed exceptions
# ---------------


class CrushError(Exception):
    """Base error for filecrush."""

    exit_code: int = EXIT_GENERIC


class UsageError(CrushError):
    exit_code = EXIT_USAGE


class ConfigError(UsageError):
    pass


class CrawlError(CrushError):
    exit_code = EXIT_CRAWL


class CodecError(CrushError):
    exit_code = EXIT_CODEC


class UnknownFormat(CodecError):
    # A misconfigured format name is a configuration error, not a data error.
    exit_code = EXIT_USAGE


class OutputWriteError(CrushError):
    exit_code = EXIT_OUTPUT_WRITE
