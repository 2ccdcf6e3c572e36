"""Newline-delimited text.

A record is one line without its ``\\n`` terminator. The writer terminates every
record, so a source file missing its final newline still cannot run into the
next file's first line.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator

from filecrush import compression
from filecrush.errors import CodecError
from filecrush.formats.base import RECORDS_BYTES, ClosingMixin

CHUNK_SIZE = 256 * 1024


class TextReader(ClosingMixin):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self.byte_size = int(self.path.stat().st_size)
            self._fp: BinaryIO = compression.open_input(self.path)
        except OSError as e:
            raise CodecError(f"text: cannot open {self.path}: {e}") from e

    def __iter__(self) -> Iterator[bytes]:
        pending = b""
        try:
            while True:
                chunk = self._fp.read(CHUNK_SIZE)
                if not chunk:
                    break
                pending += chunk
                lines = pending.split(b"\n")
                pending = lines.pop()
                yield from lines
        except compression.DECODE_ERRORS as e:
            # gzip/zstd raise these on truncated or damaged streams
            raise CodecError(f"text: cannot read {self.path}: {e}") from e
        if pending:
            yield pending

    def close(self) -> None:
        self._fp.close()


class TextWriter(ClosingMixin):
    def __init__(self, path: Path, *, compress: str | None = None) -> None:
        self.path = Path(path)
        self.records_written = 0
        self._fp: BinaryIO = compression.open_output(self.path, compress)

    def append(self, record: bytes) -> None:
        self._fp.write(bytes(record))
        self._fp.write(b"\n")
        self.records_written += 1

    def close(self) -> None:
        self._fp.close()


class TextFormat:
    name = "text"
    record_kind = RECORDS_BYTES

    def __init__(self, *, compress: str | None = None) -> None:
        self.compress = compress
        self.extension = ".txt" + compression.get(compress).suffix

    def open_reader(self, path: Path) -> TextReader:
        return TextReader(path)

    def open_writer(self, path: Path, *, template: Path | None = None) -> TextWriter:
        return TextWriter(path, compress=self.compress)
