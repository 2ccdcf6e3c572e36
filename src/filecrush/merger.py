"""Merge one bucket into one output artifact.

Contract:
  - files are read in bucket order and their records appended unmodified, so
    every source file is one contiguous run in the output
  - the artifact is written to a hidden temp file next to its final path and
    renamed into place only after the writer is closed; on any failure the temp
    file is deleted, so a failed merge leaves nothing behind
  - a merge is a pure function of (bucket, formats): a retry starts over from
    the first file, there is no resume offset
  - source files are only ever opened for reading
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Sequence

from filecrush.config import ON_CORRUPT_FAIL, ON_CORRUPT_SKIP_BUCKET, CrushConfig
from filecrush.errors import CodecError, OutputWriteError
from filecrush.formats import FormatRegistry, RecordFormat, default_registry
from filecrush.model import STATUS_COMPLETE, STATUS_SKIPPED, Bucket, FileEntry, OutputArtifact

logger = logging.getLogger(__name__)

TMP_SUFFIX = ".inprogress"


class _SourceFailure(Exception):
    """A source file of the bucket could not be decoded."""

    def __init__(self, entry: FileEntry, error: CodecError) -> None:
        super().__init__(str(error))
        self.entry = entry
        self.error = error


def temp_path_for(output_path: Path) -> Path:
    out = Path(output_path)
    return out.parent / f".{out.name}.{uuid.uuid4().hex[:12]}{TMP_SUFFIX}"


class Merger:
    def __init__(
        self,
        config: CrushConfig,
        registry: FormatRegistry | None = None,
        *,
        formats: tuple[RecordFormat, RecordFormat] | None = None,
    ) -> None:
        self.config = config
        if formats is None:
            reg = registry if registry is not None else default_registry()
            formats = reg.pair(
                config.input_format,
                config.resolved_output_format,
                compress=config.compress,
                schema_file=config.schema_file,
            )
        self.src_fmt, self.dst_fmt = formats

    def merge(self, bucket: Bucket, output_path: Path) -> OutputArtifact:
        out = Path(output_path)
        excluded: list[FileEntry] = []
        while True:
            files = [f for f in bucket.files if f not in excluded]
            if not files:
                logger.warning("bucket %s: every file was excluded, nothing written", bucket.bucket_id)
                return self._skipped(bucket, out, excluded)
            try:
                n = self._write_atomic(files, out)
            except _SourceFailure as sf:
                policy = self.config.on_corrupt
                if policy == ON_CORRUPT_FAIL:
                    raise sf.error
                if policy == ON_CORRUPT_SKIP_BUCKET:
                    logger.warning("bucket %s skipped: %s", bucket.bucket_id, sf.error)
                    return self._skipped(bucket, out, [*excluded, sf.entry])
                # skip-file: start over without it
                logger.warning("bucket %s: excluding %s: %s", bucket.bucket_id, sf.entry.path, sf.error)
                excluded.append(sf.entry)
                continue

            logger.info("wrote %s: %d files, %d records", out, len(files), n)
            return OutputArtifact(
                bucket_id=bucket.bucket_id,
                output_path=out,
                status=STATUS_COMPLETE,
                records=n,
                excluded=tuple(f.name for f in excluded),
            )

    @staticmethod
    def _skipped(bucket: Bucket, out: Path, excluded: Sequence[FileEntry]) -> OutputArtifact:
        return OutputArtifact(
            bucket_id=bucket.bucket_id,
            output_path=out,
            status=STATUS_SKIPPED,
            excluded=tuple(f.name for f in excluded),
        )

    def _write_atomic(self, files: Sequence[FileEntry], out: Path) -> int:
        try:
            # sibling tasks may race on the same parent: exist_ok
            out.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputWriteError(f"cannot create output directory {out.parent}: {e}") from e

        tmp = temp_path_for(out)
        done = False
        try:
            n = self._stream(files, tmp)
            os.replace(tmp, out)
            done = True
            return n
        except OSError as e:
            raise OutputWriteError(f"cannot write {out}: {e}") from e
        finally:
            if not done:
                self._discard(tmp)

    @staticmethod
    def _discard(tmp: Path) -> None:
        try:
            tmp.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("could not remove partial output %s: %s", tmp, e)

    def _stream(self, files: Sequence[FileEntry], tmp: Path) -> int:
        template = files[0]
        try:
            writer = self.dst_fmt.open_writer(tmp, template=template.path)
        except CodecError as e:
            # container formats derive their layout from the first file
            raise _SourceFailure(template, e) from e

        check = getattr(self.dst_fmt, "check_compatible", None)
        closed = False
        try:
            for fe in files:
                try:
                    with self.src_fmt.open_reader(fe.path) as reader:
                        if check is not None:
                            check(reader, writer)
                        for rec in reader:
                            writer.append(rec)
                except CodecError as e:
                    raise _SourceFailure(fe, e) from e
            writer.close()
            closed = True
            return int(writer.records_written)
        finally:
            if not closed:
                try:
                    writer.close()
                except (OSError, CodecError) as e:
                    logger.debug("closing discarded writer %s: %s", tmp, e)
