from __future__ import annotations

from pathlib import Path
from typing import Any, Final, Iterator, Protocol

RECORDS_BYTES: Final[str] = "bytes"
RECORDS_ROWS: Final[str] = "rows"


class RecordReader(Protocol):
    """Records of one source file, in file order.

    Records are opaque to the crusher: it moves them, it never looks inside.
    """

    path: Path
    byte_size: int

    def __iter__(self) -> Iterator[Any]: ...

    def close(self) -> None: ...


class RecordWriter(Protocol):
    path: Path
    records_written: int

    def append(self, record: Any) -> None: ...

    def close(self) -> None: ...


class RecordFormat(Protocol):
    """Minimal interface of a pluggable record format.

    ``record_kind`` says what flows between reader and writer (raw bytes or
    rows); two formats can be paired only when they agree on it.
    """

    name: str
    extension: str
    record_kind: str

    def open_reader(self, path: Path) -> RecordReader: ...

    def open_writer(self, path: Path, *, template: Path | None = None) -> RecordWriter: ...


class ClosingMixin:
    def close(self) -> None:  # pragma: no cover - overridden
        raise NotImplementedError

    def __enter__(self):  # type: ignore[no-untyped-def]
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()
