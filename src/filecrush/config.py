"""Crush configuration: the one immutable value every component is built from.

Schema id for config files: ``filecrush.crush_config.v1``

Design goals:
  - Strict: unknown keys are errors
  - Explicit: no component reads ambient state; the CLI resolves everything here
  - Precedence: CLI flag > config file > environment > defaults
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Final, Iterable, Mapping, Optional

from filecrush.errors import ConfigError

SCHEMA_ID: Final[str] = "filecrush.crush_config.v1"

THRESHOLD_DEFAULT: Final[float] = 0.75
MAX_FILE_BLOCKS_DEFAULT: Final[int] = 8

ENV_BLOCK_SIZE: Final[str] = "FILECRUSH_BLOCK_SIZE"
ENV_THRESHOLD: Final[str] = "FILECRUSH_THRESHOLD"
ENV_JOBS: Final[str] = "FILECRUSH_JOBS"

ON_CORRUPT_FAIL: Final[str] = "fail"
ON_CORRUPT_SKIP_FILE: Final[str] = "skip-file"
ON_CORRUPT_SKIP_BUCKET: Final[str] = "skip-bucket"
ON_CORRUPT_POLICIES: Final[tuple[str, ...]] = (
    ON_CORRUPT_FAIL,
    ON_CORRUPT_SKIP_FILE,
    ON_CORRUPT_SKIP_BUCKET,
)

COMPRESS_NONE: Final[str] = "none"


@dataclass(frozen=True)
class CrushConfig:
    input_format: str = "text"
    output_format: Optional[str] = None  # None: same as input_format
    compress: str = COMPRESS_NONE
    threshold: float = THRESHOLD_DEFAULT
    max_file_blocks: int = MAX_FILE_BLOCKS_DEFAULT
    block_size: Optional[int] = None  # None: ask the filesystem
    jobs: int = 1
    on_corrupt: str = ON_CORRUPT_FAIL
    ignore_regex: Optional[str] = None
    stand_alone: bool = False
    schema_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if not (0.0 < float(self.threshold) <= 1.0):
            raise ConfigError(f"threshold must be in (0, 1]: {self.threshold}")
        if int(self.max_file_blocks) < 1:
            raise ConfigError(f"max_file_blocks must be >= 1: {self.max_file_blocks}")
        if self.block_size is not None and int(self.block_size) < 1:
            raise ConfigError(f"block_size must be >= 1: {self.block_size}")
        if int(self.jobs) < 1:
            raise ConfigError(f"jobs must be >= 1: {self.jobs}")
        if self.on_corrupt not in ON_CORRUPT_POLICIES:
            raise ConfigError(
                f"on_corrupt must be one of {', '.join(ON_CORRUPT_POLICIES)}: {self.on_corrupt}"
            )
        if self.ignore_regex is not None:
            try:
                re.compile(self.ignore_regex)
            except re.error as e:
                raise ConfigError(f"ignore_regex is not a valid regex: {e}") from e

    @property
    def resolved_output_format(self) -> str:
        return self.output_format or self.input_format

    def eligibility_cutoff(self, block_size: int) -> float:
        """Files strictly below this many bytes are merged."""
        return float(self.threshold) * int(block_size)

    def bucket_ceiling(self, block_size: int) -> int:
        return int(self.max_file_blocks) * int(block_size)

    def ignore_pattern(self) -> re.Pattern[str] | None:
        return re.compile(self.ignore_regex) if self.ignore_regex else None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for f in fields(self):
            v = getattr(self, f.name)
            d[f.name] = str(v) if isinstance(v, Path) else v
        return d


# -------------
# Environment
# -------------


def _env_int(name: str) -> int | None:
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    try:
        return int(v.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer: {v!r}") from e


def _env_float(name: str) -> float | None:
    v = os.getenv(name)
    if v is None or not v.strip():
        return None
    try:
        return float(v.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be a number: {v!r}") from e


def env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    bs = _env_int(ENV_BLOCK_SIZE)
    if bs is not None:
        out["block_size"] = bs
    th = _env_float(ENV_THRESHOLD)
    if th is not None:
        out["threshold"] = th
    jobs = _env_int(ENV_JOBS)
    if jobs is not None:
        out["jobs"] = jobs
    return out


# -------------
# Config files
# -------------

_FILE_KEYS: Final[dict[str, type | tuple[type, ...]]] = {
    "input_format": str,
    "output_format": str,
    "compress": str,
    "threshold": (int, float),
    "max_file_blocks": int,
    "block_size": int,
    "jobs": int,
    "on_corrupt": str,
    "ignore_regex": str,
    "stand_alone": bool,
    "schema_file": str,
}


def _read_json_text(arg: str) -> str:
    s = arg.strip()
    if not s:
        raise ConfigError("crush config: empty input")
    if s.startswith("@"):  # @file.json
        p = Path(s[1:]).expanduser()
        if not p.is_file():
            raise ConfigError(f"crush config: file not found: {p}")
        return p.read_text(encoding="utf-8")
    return s


def _ensure_allowed_keys(obj: Mapping[str, Any], allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    extra = [k for k in obj.keys() if k not in allowed_set]
    if extra:
        raise ConfigError(f"crush config: unsupported keys: {', '.join(sorted(extra))}")


def load_config_file(arg: str) -> dict[str, Any]:
    """Load and validate a config file from '@file.json' or inline JSON.

    Returns only the keys present, so callers can layer them under CLI flags.
    """
    text = _read_json_text(arg)
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"crush config: invalid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ConfigError("crush config: root must be an object")
    _ensure_allowed_keys(obj, ["spec", *_FILE_KEYS])

    if obj.get("spec") != SCHEMA_ID:
        raise ConfigError(f"crush config: spec must be '{SCHEMA_ID}'")

    out: dict[str, Any] = {}
    for key, typ in _FILE_KEYS.items():
        if key not in obj or obj[key] is None:
            continue
        v = obj[key]
        # bool is an int subclass: reject it for numeric keys
        if not isinstance(v, typ) or (isinstance(v, bool) and typ is not bool):
            raise ConfigError(f"crush config: '{key}' has the wrong type")
        out[key] = Path(v).expanduser() if key == "schema_file" else v
    return out


def build_config(
    cli: Mapping[str, Any] | None = None,
    *,
    config_arg: str | None = None,
    environ: bool = True,
) -> CrushConfig:
    """Resolve a CrushConfig with precedence CLI > config file > environment > defaults.

    ``cli`` values that are None are treated as "not given".
    """
    merged: dict[str, Any] = {}
    if environ:
        merged.update(env_overrides())
    if config_arg:
        merged.update(load_config_file(config_arg))
    for k, v in (cli or {}).items():
        if v is not None:
            merged[k] = v
    try:
        return CrushConfig(**merged)
    except TypeError as e:
        raise ConfigError(f"crush config: {e}") from e
