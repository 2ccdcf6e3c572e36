from __future__ import annotations

import gzip
from pathlib import Path

import pyarrow as pa
import pytest
import zstandard

from filecrush import compression
from filecrush.errors import EXIT_USAGE, CodecError, ConfigError, UnknownFormat, UsageError
from filecrush.formats import RECORDS_BYTES, FormatRegistry, default_registry
from filecrush.formats.parquet import ParquetFormat, write_rows
from filecrush.formats.seqrec import HEADER, SeqRecFormat, _enc_varint, write_records
from filecrush.formats.text import TextFormat


def _read_all(fmt, path: Path) -> list:
    with fmt.open_reader(path) as r:
        return list(r)


# ---- text ----


def test_text_records_are_lines_without_terminator(tmp_path: Path) -> None:
    p = tmp_path / "a.txt"
    p.write_bytes(b"alpha\nbeta\r\n\ngamma")

    assert _read_all(TextFormat(), p) == [b"alpha", b"beta\r", b"", b"gamma"]


def test_text_empty_file_has_no_records(tmp_path: Path) -> None:
    p = tmp_path / "empty.txt"
    p.write_bytes(b"")

    assert _read_all(TextFormat(), p) == []


def test_text_writer_terminates_every_record(tmp_path: Path) -> None:
    out = tmp_path / "out.txt"
    with TextFormat().open_writer(out) as w:
        w.append(b"one")
        w.append(b"two")

    assert out.read_bytes() == b"one\ntwo\n"
    assert w.records_written == 2


def test_text_reads_gzip_and_zstd_inputs(tmp_path: Path) -> None:
    gz = tmp_path / "a.txt.gz"
    gz.write_bytes(gzip.compress(b"x\ny\n"))
    zs = tmp_path / "b.txt.zst"
    zs.write_bytes(zstandard.ZstdCompressor().compress(b"p\nq\n"))

    assert _read_all(TextFormat(), gz) == [b"x", b"y"]
    assert _read_all(TextFormat(), zs) == [b"p", b"q"]


@pytest.mark.parametrize("name", ["gzip", "zstd"])
def test_text_compressed_output_roundtrips(tmp_path: Path, name: str) -> None:
    fmt = TextFormat(compress=name)
    out = tmp_path / f"out{fmt.extension}"
    with fmt.open_writer(out) as w:
        for i in range(1000):
            w.append(f"line {i}".encode())

    assert compression.sniff(out).name == name
    assert _read_all(TextFormat(), out) == [f"line {i}".encode() for i in range(1000)]


def test_text_truncated_gzip_is_codec_error(tmp_path: Path) -> None:
    blob = gzip.compress(b"".join(b"row %d\n" % i for i in range(5000)))
    p = tmp_path / "cut.txt.gz"
    p.write_bytes(blob[: len(blob) // 2])

    with pytest.raises(CodecError):
        _read_all(TextFormat(), p)


# ---- seqrec ----


def test_seqrec_roundtrip_binary_payloads(tmp_path: Path) -> None:
    recs = [b"", b"\x00\x01\n\xff", b"plain", bytes(range(256)) * 3]
    p = tmp_path / "a.seqrec"
    write_records(p, recs)

    assert p.read_bytes().startswith(HEADER)
    assert _read_all(SeqRecFormat(), p) == recs


def test_seqrec_zstd_roundtrip(tmp_path: Path) -> None:
    recs = [b"r%d" % i for i in range(300)]
    p = tmp_path / "a.seqrec.zst"
    write_records(p, recs, compress="zstd")

    assert _read_all(SeqRecFormat(), p) == recs


def test_seqrec_bad_magic(tmp_path: Path) -> None:
    p = tmp_path / "a.seqrec"
    p.write_bytes(b"NOPE\x01")

    with pytest.raises(CodecError, match="magic"):
        SeqRecFormat().open_reader(p)


def test_seqrec_crc_mismatch(tmp_path: Path) -> None:
    p = tmp_path / "a.seqrec"
    write_records(p, [b"hello", b"world"])
    raw = bytearray(p.read_bytes())
    raw[len(HEADER) + 1] ^= 0x01  # first payload byte
    p.write_bytes(bytes(raw))

    with pytest.raises(CodecError, match="CRC"):
        _read_all(SeqRecFormat(), p)


def test_seqrec_truncated(tmp_path: Path) -> None:
    p = tmp_path / "a.seqrec"
    write_records(p, [b"hello", b"world"])
    p.write_bytes(p.read_bytes()[:-3])

    with pytest.raises(CodecError, match="truncated"):
        _read_all(SeqRecFormat(), p)


@pytest.mark.parametrize("length", [1 << 40, 1 << 62, 1 << 63, 1 << 69])
def test_seqrec_huge_length_prefix_is_truncation(tmp_path: Path, length: int) -> None:
    p = tmp_path / "a.seqrec"
    p.write_bytes(HEADER + _enc_varint(length) + b"xx")

    with pytest.raises(CodecError, match="truncated record 0"):
        _read_all(SeqRecFormat(), p)


def test_read_exact_stops_at_end_of_stream(tmp_path: Path) -> None:
    p = tmp_path / "blob"
    p.write_bytes(b"abc")

    with p.open("rb") as fp:
        assert compression.read_exact(fp, 1 << 62) == b"abc"


# ---- parquet ----

SCHEMA = pa.schema([("key", pa.string()), ("value", pa.int64())])


def test_parquet_writer_takes_schema_from_template(tmp_path: Path) -> None:
    src = tmp_path / "a.parquet"
    rows = [{"key": "0", "value": i} for i in range(10)]
    write_rows(src, rows, SCHEMA)

    fmt = ParquetFormat()
    out = tmp_path / "out.parquet"
    with fmt.open_writer(out, template=src) as w:
        for r in _read_all(fmt, src):
            w.append(r)

    assert _read_all(fmt, out) == rows
    assert w.schema.equals(SCHEMA)


def test_parquet_schema_file_must_exist(tmp_path: Path) -> None:
    fmt = ParquetFormat(schema_file=tmp_path / "missing.parquet")

    with pytest.raises(ConfigError):
        fmt.open_writer(tmp_path / "out.parquet")


def test_parquet_rejects_unknown_compression() -> None:
    with pytest.raises(ConfigError):
        ParquetFormat(compress="lz5")


# ---- registry / compression ----


def test_registry_builtins_and_unknown_name() -> None:
    reg = default_registry()

    assert reg.names() == ["parquet", "seqrec", "text"]
    assert reg.create("TEXT").name == "text"
    with pytest.raises(UnknownFormat) as ei:
        reg.create("avro")
    assert ei.value.exit_code == EXIT_USAGE


def test_registry_pairs_only_compatible_formats() -> None:
    reg = default_registry()

    src, dst = reg.pair("text", "seqrec", compress="gzip")
    assert (src.record_kind, dst.record_kind) == (RECORDS_BYTES, RECORDS_BYTES)
    assert dst.extension == ".seqrec.gz"
    with pytest.raises(UsageError):
        reg.pair("parquet", "text")


def test_registry_accepts_custom_formats() -> None:
    reg = FormatRegistry()
    reg.register("lines", TextFormat)

    assert isinstance(reg.create("lines"), TextFormat)
    assert reg.names() == ["lines"]


def test_unknown_byte_compression_is_config_error() -> None:
    with pytest.raises(ConfigError):
        compression.get("snappy")
    with pytest.raises(ConfigError):
        TextFormat(compress="lz4")
