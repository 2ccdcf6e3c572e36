"""Name -> factory registry for record formats.

Built-ins are registered at import. Selection happens once, from the resolved
configuration; an unknown name is a configuration error (UnknownFormat).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from filecrush.errors import UnknownFormat, UsageError
from filecrush.formats.base import RecordFormat
from filecrush.formats.parquet import ParquetFormat
from filecrush.formats.seqrec import SeqRecFormat
from filecrush.formats.text import TextFormat

FormatFactory = Callable[..., RecordFormat]


class FormatRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, FormatFactory] = {}

    def register(self, name: str, factory: FormatFactory) -> None:
        key = str(name).strip().lower()
        if not key:
            raise ValueError("format name must not be empty")
        self._factories[key] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def create(self, name: str, **options: Any) -> RecordFormat:
        key = str(name or "").strip().lower()
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownFormat(
                f"unknown format: {name!r} (registered: {', '.join(self.names())})"
            )
        return factory(**options)

    def pair(
        self,
        input_format: str,
        output_format: str,
        *,
        compress: str | None = None,
        schema_file: Path | None = None,
    ) -> tuple[RecordFormat, RecordFormat]:
        """Build the (reader side, writer side) formats for one run.

        Output compression applies to the writer side only; readers detect
        their own input compression.
        """
        src = self._build(input_format, compress=None, schema_file=schema_file)
        dst = self._build(output_format, compress=compress, schema_file=schema_file)
        if src.record_kind != dst.record_kind:
            raise UsageError(
                f"cannot convert {src.name} ({src.record_kind}) into {dst.name} ({dst.record_kind})"
            )
        return src, dst

    def _build(self, name: str, *, compress: str | None, schema_file: Path | None) -> RecordFormat:
        if str(name or "").strip().lower() == ParquetFormat.name:
            return self.create(name, compress=compress, schema_file=schema_file)
        return self.create(name, compress=compress)


def default_registry() -> FormatRegistry:
    reg = FormatRegistry()
    reg.register(TextFormat.name, TextFormat)
    reg.register(SeqRecFormat.name, SeqRecFormat)
    reg.register(ParquetFormat.name, ParquetFormat)
    return reg
