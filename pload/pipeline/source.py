"""
Record source: decodes the input stream into 8-field records.

Input is CSV with a header row. Compressed input is detected by the gzip magic
bytes (RFC 1952: the first two bytes are 0x1f 0x8b), so callers can pipe
either plain or gzipped files without flags.
"""

from __future__ import annotations

import csv
import gzip
import io
import sys
from typing import BinaryIO, Iterable, Iterator, List, Optional, TextIO

from pload.domain.errors import DecodeError
from pload.domain.models import RECORD_ARITY, Record
from pload.pipeline.cancellation import CancellationToken
from pload.pipeline.channel import RecordChannel
from pload.utils.logging import get_logger

log = get_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class _Prefixed(io.RawIOBase):
    """Raw stream that replays already-consumed `prefix` bytes before `rest`."""

    def __init__(self, prefix: bytes, rest: io.BufferedReader) -> None:
        super().__init__()
        self._prefix = prefix
        self._rest = rest

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:  # type: ignore[no-untyped-def]
        if self._prefix:
            n = min(len(b), len(self._prefix))
            b[:n] = self._prefix[:n]
            self._prefix = self._prefix[n:]
            return n
        data = self._rest.read1(len(b))
        b[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._rest.close()
        super().close()


def _decoded(raw: BinaryIO) -> TextIO:
    buffered = raw if isinstance(raw, io.BufferedReader) else io.BufferedReader(raw)  # type: ignore[arg-type]
    # read() keeps pulling from the raw stream until both magic bytes or EOF arrive.
    magic = buffered.read(2)
    if not magic:
        raise DecodeError("input is empty")
    stream = io.BufferedReader(_Prefixed(magic, buffered))
    if magic == GZIP_MAGIC:
        log.debug("gzip input detected")
        return io.TextIOWrapper(gzip.GzipFile(fileobj=stream), encoding="utf-8", newline="")
    return io.TextIOWrapper(stream, encoding="utf-8", newline="")


def open_input(path: Optional[str] = None) -> TextIO:
    """
    Open `path` (or stdin when None) as text, transparently gunzipping.

    Raises
    ------
    DecodeError
        If the input has no bytes at all.
    OSError
        If the file cannot be opened.
    """
    if path is None or path == "-":
        return _decoded(sys.stdin.buffer)
    raw = open(path, "rb")
    try:
        return _decoded(raw)
    except BaseException:
        raw.close()
        raise


class RecordReader:
    """
    Iterate over the data rows of a CSV stream as immutable records.

    Blank lines are skipped. The first non-blank row is the header and is
    discarded. The header and every data row must have exactly RECORD_ARITY
    fields; anything else stops iteration with a DecodeError.
    """

    def __init__(self, stream: Iterable[str]) -> None:
        self._reader = csv.reader(stream, strict=True)
        self.rows_read = 0

    @property
    def line_num(self) -> int:
        return self._reader.line_num

    def _check_arity(self, row: List[str]) -> None:
        if len(row) != RECORD_ARITY:
            raise DecodeError(
                f"wrong number of fields: expected {RECORD_ARITY}, got {len(row)}",
                line=self._reader.line_num,
            )

    def __iter__(self) -> Iterator[Record]:
        try:
            rows = (row for row in self._reader if row)
            header = next(rows, None)
            if header is None:
                return
            self._check_arity(header)
            for row in rows:
                self._check_arity(row)
                self.rows_read += 1
                yield tuple(row)
        except csv.Error as exc:
            raise DecodeError(str(exc), line=self._reader.line_num) from exc
        except (UnicodeDecodeError, EOFError, gzip.BadGzipFile) as exc:
            raise DecodeError(str(exc), line=self._reader.line_num) from exc


def produce(
    records: Iterable[Record],
    channel: RecordChannel[Record],
    cancel: CancellationToken,
) -> int:
    """
    Push every record onto `channel`, then close it.

    Returns the number of records handed off. A decode error stops production
    at the offending row, fires `cancel` and propagates; a cancellation while
    blocked on a full channel drops the pending record and raises
    IngestCancelled. The channel is closed on every exit path.
    """
    sent = 0
    try:
        for record in records:
            channel.put(record, cancel)
            sent += 1
    except BaseException as exc:
        cancel.cancel(str(exc) or type(exc).__name__)
        raise
    finally:
        channel.close()
        log.debug("Record source finished", extra={"records": sent})
    return sent


__all__ = ["GZIP_MAGIC", "RecordReader", "open_input", "produce"]
