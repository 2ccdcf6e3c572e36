"""Parquet: a self-describing schema container.

Records are rows (``dict`` per row, as produced by ``RecordBatch.to_pylist``).
The writer schema is taken from ``schema_file`` (any parquet file) when given,
otherwise from the bucket's first file. Every source file must carry the same
schema: the crusher does not evolve schemas.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Final, Iterator

import pyarrow as pa
import pyarrow.parquet as pq

from filecrush.errors import CodecError, ConfigError
from filecrush.formats.base import RECORDS_ROWS, ClosingMixin

READ_BATCH_ROWS: Final[int] = 64 * 1024
WRITE_BATCH_ROWS: Final[int] = 64 * 1024

# --compress name -> parquet column compression
_COMPRESSION: Final[dict[str, str]] = {
    "none": "none",
    "gzip": "gzip",
    "zstd": "zstd",
    "snappy": "snappy",
}


def _read_schema(path: Path) -> pa.Schema:
    try:
        return pq.read_schema(str(path))
    except (OSError, pa.ArrowException) as e:
        raise CodecError(f"parquet: cannot read schema of {path}: {e}") from e


class ParquetReader(ClosingMixin):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self.byte_size = int(self.path.stat().st_size)
            self._pf = pq.ParquetFile(str(self.path))
        except (OSError, pa.ArrowException) as e:
            raise CodecError(f"parquet: cannot open {self.path}: {e}") from e

    @property
    def schema(self) -> pa.Schema:
        return self._pf.schema_arrow

    def __iter__(self) -> Iterator[dict[str, Any]]:
        try:
            for batch in self._pf.iter_batches(batch_size=READ_BATCH_ROWS):
                yield from batch.to_pylist()
        except (OSError, pa.ArrowException) as e:
            raise CodecError(f"parquet: cannot read {self.path}: {e}") from e

    def close(self) -> None:
        self._pf.close()


class ParquetWriter(ClosingMixin):
    def __init__(self, path: Path, schema: pa.Schema, *, compression: str = "none") -> None:
        self.path = Path(path)
        self.schema = schema
        self.records_written = 0
        self._rows: list[dict[str, Any]] = []
        self._w = pq.ParquetWriter(str(self.path), schema, compression=compression)

    def append(self, record: dict[str, Any]) -> None:
        self._rows.append(record)
        self.records_written += 1
        if len(self._rows) >= WRITE_BATCH_ROWS:
            self._flush()

    def _flush(self) -> None:
        if not self._rows:
            return
        try:
            table = pa.Table.from_pylist(self._rows, schema=self.schema)
        except (pa.ArrowException, TypeError) as e:
            raise CodecError(f"parquet: rows do not fit schema of {self.path}: {e}") from e
        self._w.write_table(table)
        self._rows = []

    def close(self) -> None:
        try:
            self._flush()
        finally:
            self._w.close()


class ParquetFormat:
    name = "parquet"
    extension = ".parquet"
    record_kind = RECORDS_ROWS

    def __init__(self, *, compress: str | None = None, schema_file: Path | None = None) -> None:
        key = (compress or "none").strip().lower()
        if key not in _COMPRESSION:
            raise ConfigError(
                f"unsupported compression for parquet: {compress} (supported: {', '.join(sorted(_COMPRESSION))})"
            )
        self.compression = _COMPRESSION[key]
        self.schema_file = Path(schema_file) if schema_file else None

    def writer_schema(self, template: Path | None) -> pa.Schema:
        if self.schema_file is not None:
            if not self.schema_file.is_file():
                raise ConfigError(f"parquet: schema file not found: {self.schema_file}")
            try:
                return _read_schema(self.schema_file)
            except CodecError as e:
                raise ConfigError(str(e)) from e
        if template is None:
            raise ConfigError("parquet: a schema file or a template file is required")
        return _read_schema(template)

    def open_reader(self, path: Path) -> ParquetReader:
        return ParquetReader(path)

    def open_writer(self, path: Path, *, template: Path | None = None) -> ParquetWriter:
        return ParquetWriter(path, self.writer_schema(template), compression=self.compression)

    def check_compatible(self, reader: ParquetReader, writer: ParquetWriter) -> None:
        if not reader.schema.equals(writer.schema, check_metadata=False):
            raise CodecError(
                f"parquet: schema of {reader.path} differs from the output schema"
            )


def write_rows(path: Path, rows: list[dict[str, Any]], schema: pa.Schema) -> None:
    """Convenience for tools and tests: write a whole parquet file."""
    pq.write_table(pa.Table.from_pylist(rows, schema=schema), str(path))
