"""SEQREC: a small binary record container.

Layout:
  MAGIC      4B  b"FCSR"
  VERSION    1B  0x01
  records*   varint(len) + payload + crc32(payload) (uint32 little endian)

Readers are strict: bad magic, unknown version, truncation or a CRC mismatch
are all CodecError. Records are arbitrary bytes (may contain NUL/newlines).
"""

from __future__ import annotations

import struct
import zlib
from pathlib import Path
from typing import BinaryIO, Final, Iterator, Tuple

from filecrush import compression
from filecrush.errors import CodecError
from filecrush.formats.base import RECORDS_BYTES, ClosingMixin

SEQREC_MAGIC: Final[bytes] = b"FCSR"
SEQREC_VERSION: Final[int] = 1
HEADER: Final[bytes] = SEQREC_MAGIC + bytes([SEQREC_VERSION])


def _enc_varint(x: int) -> bytes:
    if x < 0:
        raise ValueError("negative varint not supported")
    out = bytearray()
    while True:
        b = x & 0x7F
        x >>= 7
        if x:
            out.append(0x80 | b)
        else:
            out.append(b)
            break
    return bytes(out)


def _read_varint(fp: BinaryIO) -> Tuple[int, bool]:
    """Return (value, eof). eof is True only on a clean end before the first byte."""
    shift = 0
    x = 0
    first = True
    while True:
        raw = compression.read_exact(fp, 1)
        if not raw:
            if first:
                return 0, True
            raise ValueError("truncated varint")
        first = False
        b = raw[0]
        x |= (b & 0x7F) << shift
        if (b & 0x80) == 0:
            return x, False
        shift += 7
        if shift > 63:
            raise ValueError("varint too large")


def _crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


class SeqRecReader(ClosingMixin):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self.byte_size = int(self.path.stat().st_size)
            self._fp: BinaryIO = compression.open_input(self.path)
            head = compression.read_exact(self._fp, len(HEADER))
        except compression.DECODE_ERRORS as e:
            raise CodecError(f"seqrec: cannot open {self.path}: {e}") from e
        if head[:4] != SEQREC_MAGIC:
            self._fp.close()
            raise CodecError(f"seqrec: bad magic in {self.path}")
        if len(head) < len(HEADER) or head[4] != SEQREC_VERSION:
            self._fp.close()
            raise CodecError(f"seqrec: unsupported version in {self.path}")

    def __iter__(self) -> Iterator[bytes]:
        idx = 0
        while True:
            try:
                n, eof = _read_varint(self._fp)
                if eof:
                    return
                payload = compression.read_exact(self._fp, n)
                tail = compression.read_exact(self._fp, 4)
            except compression.DECODE_ERRORS as e:
                raise CodecError(f"seqrec: cannot read record {idx} of {self.path}: {e}") from e
            if len(payload) != n or len(tail) != 4:
                raise CodecError(f"seqrec: truncated record {idx} in {self.path}")
            if struct.unpack("<I", tail)[0] != _crc32(payload):
                raise CodecError(f"seqrec: CRC mismatch at record {idx} in {self.path}")
            yield payload
            idx += 1

    def close(self) -> None:
        self._fp.close()


class SeqRecWriter(ClosingMixin):
    def __init__(self, path: Path, *, compress: str | None = None) -> None:
        self.path = Path(path)
        self.records_written = 0
        self._fp: BinaryIO = compression.open_output(self.path, compress)
        self._fp.write(HEADER)

    def append(self, record: bytes) -> None:
        payload = bytes(record)
        self._fp.write(_enc_varint(len(payload)))
        self._fp.write(payload)
        self._fp.write(struct.pack("<I", _crc32(payload)))
        self.records_written += 1

    def close(self) -> None:
        self._fp.close()


class SeqRecFormat:
    name = "seqrec"
    record_kind = RECORDS_BYTES

    def __init__(self, *, compress: str | None = None) -> None:
        self.compress = compress
        self.extension = ".seqrec" + compression.get(compress).suffix

    def open_reader(self, path: Path) -> SeqRecReader:
        return SeqRecReader(path)

    def open_writer(self, path: Path, *, template: Path | None = None) -> SeqRecWriter:
        return SeqRecWriter(path, compress=self.compress)


def write_records(path: Path, records: list[bytes], *, compress: str | None = None) -> None:
    """Convenience for tools and tests: write a whole SEQREC file."""
    with SeqRecWriter(path, compress=compress) as w:
        for r in records:
            w.append(r)
