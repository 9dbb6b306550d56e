# decode.py
# SPDX-License-Identifier: MIT
"""Streaming gzip decompression and incremental JSON value decoding.

The decoder never buffers a whole decompressed payload: it pulls chunks from
the gzip stream, decodes UTF-8 incrementally, and parses one top-level JSON
value at a time. Values may be newline-delimited or simply concatenated.
"""

from __future__ import annotations

import codecs
import gzip
import io
import json
import re
import zlib
from collections.abc import Iterator
from typing import IO

from .errors import DecodeError, DecompressionError
from .log import get_logger
from .records import DecodedBatch, WorkRecord, batch_from_value

__all__ = ["DEFAULT_CHUNK_SIZE", "open_gzip_stream", "StreamDecoder"]

log = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
_GZIP_MAGIC = b"\x1f\x8b"
_JSON_WS = re.compile(r"[ \t\n\r]*")
# gzip.BadGzipFile is an OSError subclass.
_DECOMPRESSION_ERRORS = (OSError, EOFError, zlib.error)
# Errors this close to the end of the buffer may be caused by a chunk boundary.
_TRUNCATION_MARGIN = 16


def _reject_constant(name: str) -> float:
    raise DecodeError(f"invalid JSON literal {name}")


def _may_be_truncated(exc: json.JSONDecodeError, buffered: int) -> bool:
    """Return True when more input could turn ``exc`` into a valid parse."""
    if exc.msg.startswith("Unterminated string"):
        return True
    return exc.pos >= buffered - _TRUNCATION_MARGIN


def _peek_prefix(fileobj: IO[bytes], n: int) -> bytes:
    """Return up to ``n`` leading bytes without consuming them."""
    peek = getattr(fileobj, "peek", None)
    if callable(peek):
        return peek(n)[:n]
    pos = fileobj.tell()
    head = fileobj.read(n)
    fileobj.seek(pos, io.SEEK_SET)
    return head


def open_gzip_stream(fileobj: IO[bytes], *, source: str | None = None) -> gzip.GzipFile:
    """Wrap a binary handle in a gzip reader and validate its header eagerly.

    The caller keeps ownership of ``fileobj``; closing the returned reader
    does not close it.

    Args:
        fileobj (IO[bytes]): Seekable or peekable binary handle positioned at
            the start of a gzip stream.
        source (str | None): File identity used in error messages.

    Returns:
        gzip.GzipFile: Reader exposing the decompressed byte stream.

    Raises:
        DecompressionError: If the header is missing or malformed.
    """
    try:
        magic = _peek_prefix(fileobj, len(_GZIP_MAGIC))
    except OSError as exc:
        raise DecompressionError("failed to create gzip reader", path=source, cause=exc) from exc
    if len(magic) < len(_GZIP_MAGIC):
        raise DecompressionError(
            "failed to create gzip reader",
            path=source,
            cause=EOFError("missing gzip header"),
        )
    gz = gzip.GzipFile(fileobj=fileobj, mode="rb")
    try:
        # Forces the member header to be parsed before any record is yielded.
        gz.peek(1)
    except _DECOMPRESSION_ERRORS as exc:
        gz.close()
        raise DecompressionError("failed to create gzip reader", path=source, cause=exc) from exc
    return gz


class StreamDecoder:
    """Pull-based sequence of :class:`DecodedBatch` values from a byte stream.

    One batch is produced per top-level JSON value, in stream order. The
    decoder is single-use: iterating it a second time raises, and the only
    way to start over is to reopen the source file.

    Attributes:
        source (str | None): File identity attached to raised errors.
        chunk_size (int): Minimum number of decompressed bytes per read.
        batches (int): Number of batches decoded so far.
    """

    def __init__(
        self,
        stream: IO[bytes],
        *,
        source: str | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._stream = stream
        self.source = source
        self.chunk_size = max(1, int(chunk_size))
        self.batches = 0
        self._started = False

    def __iter__(self) -> Iterator[DecodedBatch]:
        if self._started:
            raise RuntimeError("StreamDecoder is single-use; reopen the source to decode it again")
        self._started = True
        return self._iter_batches()

    def iter_records(self) -> Iterator[WorkRecord]:
        """Yield records from every batch in source order."""
        for batch in self:
            yield from batch.records

    def _read(self, size: int) -> bytes:
        try:
            return self._stream.read(size)
        except _DECOMPRESSION_ERRORS as exc:
            raise DecompressionError("failed to decompress stream", path=self.source, cause=exc) from exc

    def _fill(self, buf: str, text_decoder: codecs.IncrementalDecoder, size: int) -> tuple[str, bool]:
        """Append the next decompressed chunk to ``buf``; report end of stream."""
        chunk = self._read(size)
        eof = not chunk
        return buf + text_decoder.decode(chunk, final=eof), eof

    def _iter_batches(self) -> Iterator[DecodedBatch]:
        decoder = json.JSONDecoder(parse_constant=_reject_constant)
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buf = ""
        pos = 0
        eof = False
        while True:
            pos = _JSON_WS.match(buf, pos).end()
            if pos >= len(buf):
                if eof:
                    log.debug("Finished %s: batches=%d", self.source, self.batches)
                    return
                buf, eof = self._fill("", text_decoder, self.chunk_size)
                pos = 0
                continue

            try:
                value, end = decoder.raw_decode(buf, pos)
            except json.JSONDecodeError as exc:
                if eof or not _may_be_truncated(exc, len(buf)):
                    raise DecodeError("failed to decode json", path=self.source, cause=exc) from exc
                # Incomplete value: read at least as much again as is pending.
                buf = buf[pos:]
                pos = 0
                buf, eof = self._fill(buf, text_decoder, max(self.chunk_size, len(buf)))
                continue
            except DecodeError as exc:
                raise DecodeError("failed to decode json", path=self.source, cause=exc) from exc

            if end >= len(buf) and not eof and not isinstance(value, (dict, list, str)):
                # A scalar touching the buffer edge may continue in the next chunk.
                buf = buf[pos:]
                pos = 0
                buf, eof = self._fill(buf, text_decoder, self.chunk_size)
                continue

            pos = end
            try:
                batch = batch_from_value(value)
            except DecodeError as exc:
                raise DecodeError("failed to decode json", path=self.source, cause=exc) from exc
            self.batches += 1
            yield batch
