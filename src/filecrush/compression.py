"""Stream compression for byte-oriented record formats.

Output compression is chosen by name (``--compress``); input compression is
detected from magic bytes, so a directory may mix plain and compressed files.
"""

from __future__ import annotations

import gzip
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Final

import zstandard as zstd

from filecrush.errors import ConfigError

GZIP_MAGIC: Final[bytes] = b"\x1f\x8b"
ZSTD_MAGIC: Final[bytes] = b"\x28\xb5\x2f\xfd"
READ_CHUNK: Final[int] = 1 << 20


@dataclass(frozen=True)
class CompressionNone:
    name: str = "none"
    suffix: str = ""

    def open_read(self, path: Path) -> BinaryIO:
        return Path(path).open("rb")

    def open_write(self, path: Path) -> BinaryIO:
        return Path(path).open("wb")


@dataclass(frozen=True)
class CompressionGzip:
    level: int = 6
    name: str = "gzip"
    suffix: str = ".gz"

    def open_read(self, path: Path) -> BinaryIO:
        return gzip.open(path, "rb")  # type: ignore[return-value]

    def open_write(self, path: Path) -> BinaryIO:
        # no name, mtime=0: identical input gives identical bytes
        fp = Path(path).open("wb")
        return _OwningGzipFile(fp, compresslevel=self.level)  # type: ignore[return-value]


class _OwningGzipFile(gzip.GzipFile):
    """GzipFile that also closes the file object it writes into."""

    def __init__(self, fp: BinaryIO, *, compresslevel: int) -> None:
        super().__init__(filename="", mode="wb", fileobj=fp, compresslevel=compresslevel, mtime=0)
        self._owned = fp

    def close(self) -> None:
        try:
            super().close()
        finally:
            self._owned.close()


@dataclass(frozen=True)
class CompressionZstd:
    level: int = 3
    name: str = "zstd"
    suffix: str = ".zst"

    def open_read(self, path: Path) -> BinaryIO:
        fp = Path(path).open("rb")
        return zstd.ZstdDecompressor().stream_reader(fp, closefd=True)  # type: ignore[return-value]

    def open_write(self, path: Path) -> BinaryIO:
        fp = Path(path).open("wb")
        c = zstd.ZstdCompressor(level=int(self.level))
        return c.stream_writer(fp, closefd=True)  # type: ignore[return-value]


_BY_NAME = {
    "none": CompressionNone(),
    "gzip": CompressionGzip(),
    "zstd": CompressionZstd(),
}


def names() -> list[str]:
    return sorted(_BY_NAME)


def get(name: str | None) -> CompressionNone | CompressionGzip | CompressionZstd:
    key = (name or "none").strip().lower()
    try:
        return _BY_NAME[key]
    except KeyError:
        raise ConfigError(
            f"unsupported compression for byte formats: {name} (supported: {', '.join(names())})"
        ) from None


def sniff(path: Path) -> CompressionNone | CompressionGzip | CompressionZstd:
    with Path(path).open("rb") as fp:
        head = fp.read(4)
    if head.startswith(GZIP_MAGIC):
        return _BY_NAME["gzip"]
    if head.startswith(ZSTD_MAGIC):
        return _BY_NAME["zstd"]
    return _BY_NAME["none"]


def open_input(path: Path) -> BinaryIO:
    return sniff(path).open_read(path)


def open_output(path: Path, name: str | None) -> BinaryIO:
    return get(name).open_write(path)


def read_exact(fp: BinaryIO, n: int) -> bytes:
    """Read exactly n bytes, or fewer only at end of stream.

    Decompressing readers may return short reads mid-stream.
    """
    parts: list[bytes] = []
    remaining = int(n)
    while remaining > 0:
        # bounded: a corrupt length prefix must hit EOF, not allocate it
        chunk = fp.read(min(remaining, READ_CHUNK))
        if not chunk:
            break
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


# What readers raise on damaged/truncated compressed or container streams.
DECODE_ERRORS: Final[tuple[type[BaseException], ...]] = (
    OSError,
    EOFError,
    ValueError,
    zstd.ZstdError,
)
