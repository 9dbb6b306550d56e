# parquet.py
# SPDX-License-Identifier: MIT
"""Parquet sink for writing projected work records to a single file."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional

import pyarrow as pa
import pyarrow.parquet as pq

from ..core.log import get_logger
from ..core.records import WorkRecord

log = get_logger(__name__)

SCHEMA = pa.schema(
    [
        pa.field("doi", pa.string()),
        pa.field("title", pa.list_(pa.string())),
        pa.field("references_count", pa.int64()),
        pa.field(
            "author",
            pa.list_(pa.struct([pa.field("given", pa.string()), pa.field("family", pa.string())])),
        ),
        pa.field("source", pa.string()),
    ]
)


class ParquetSink:
    """Write records to a Parquet file.

    Rows are buffered and flushed as row groups of ``row_group_size``; the
    remainder is flushed on close. ``accept`` may be called from any worker.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        compression: str = "snappy",
        row_group_size: int = 10_000,
    ) -> None:
        """Initialize the sink configuration.

        Args:
            path (str | Path): Target ``.parquet`` file.
            compression (str): Parquet compression codec name.
            row_group_size (int): Records per row group.
        """
        self._target = Path(path)
        self._compression = compression or "snappy"
        self._row_group_size = max(1, int(row_group_size))
        self._buffer: list[dict[str, Any]] = []
        self._writer: Optional[pq.ParquetWriter] = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def path(self) -> Path:
        return self._target

    def open(self) -> None:
        """Prepare the target directory and reset buffered state."""
        self._target.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            self._buffer.clear()
            self._writer = None
            self._closed = False

    def accept(self, record: WorkRecord, source: str) -> None:
        row = {
            "doi": record.doi,
            "title": list(record.title),
            "references_count": record.references_count,
            "author": [{"given": a.given, "family": a.family} for a in record.author],
            "source": source,
        }
        with self._lock:
            if self._closed:
                log.warning("accept called on closed ParquetSink; ignoring record.")
                return
            self._buffer.append(row)
            if len(self._buffer) >= self._row_group_size:
                self._flush_locked()

    def close(self) -> None:
        """Flush any buffered rows and release the writer.

        A run that delivered no records still produces an empty file with
        the full schema.
        """
        with self._lock:
            if self._closed:
                return
            try:
                if self._buffer or self._writer is None:
                    self._flush_locked()
            finally:
                if self._writer is not None:
                    try:
                        self._writer.close()
                    finally:
                        self._writer = None
                self._closed = True

    def _flush_locked(self) -> None:
        table = pa.Table.from_pylist(self._buffer, schema=SCHEMA)
        if self._writer is None:
            self._writer = pq.ParquetWriter(self._target, SCHEMA, compression=self._compression)
        self._writer.write_table(table)
        self._buffer.clear()


__all__ = ["ParquetSink", "SCHEMA"]
