"""Pluggable record formats (reader/writer pairs selected by name)."""

from filecrush.formats.base import RECORDS_BYTES, RECORDS_ROWS, RecordFormat, RecordReader, RecordWriter
from filecrush.formats.registry import FormatRegistry, default_registry

__all__ = [
    "RECORDS_BYTES",
    "RECORDS_ROWS",
    "FormatRegistry",
    "RecordFormat",
    "RecordReader",
    "RecordWriter",
    "default_registry",
]
