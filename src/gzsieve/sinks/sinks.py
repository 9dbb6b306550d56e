# sinks.py
# SPDX-License-Identifier: MIT
"""Record sinks: logging projection, JSONL files, counting, and fan-out.

Every sink here may be called concurrently from all workers. File sinks
serialize writes with a lock; the logging sink relies on the logging
module's own handler locks.
"""
from __future__ import annotations

import gzip
import json
import logging
import os
import threading
from collections import defaultdict
from collections.abc import Iterable, Sequence
from contextlib import ExitStack
from pathlib import Path
from typing import TextIO

from ..core.interfaces import RecordSink
from ..core.log import get_logger
from ..core.records import WorkRecord, project_record

log = get_logger(__name__)


class LoggingRecordSink:
    """Log the identifying fields of each record at ``level``."""

    def __init__(self, logger: logging.Logger | None = None, *, level: int = logging.INFO) -> None:
        self._log = logger or log
        self._level = level

    def accept(self, record: WorkRecord, source: str) -> None:
        self._log.log(
            self._level,
            "DOI: %s, Title: [%s], ReferencesCount: %d  file: %s",
            record.doi,
            " ".join(record.title),
            record.references_count,
            source,
        )


class _BaseJSONLSink:
    """Shared JSONL sink logic: temp file, lock-guarded writes, rename on close."""

    def __init__(self, out_path: str | os.PathLike[str]):
        """Configure a JSONL sink.

        Args:
            out_path (str | os.PathLike[str]): Destination file path.
        """
        self._path = Path(out_path)
        self._fp: TextIO | None = None
        self._tmp_path: Path | None = None
        self._lock = threading.Lock()
        self.written = 0

    @property
    def path(self) -> Path:
        return self._path

    def open(self) -> None:
        """Create a temp file next to the destination for writing."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._tmp_path = self._path.parent / f"{self._path.name}.tmp"
        self._fp = self._open_handle(self._tmp_path)

    def accept(self, record: WorkRecord, source: str) -> None:
        """Write a single projected record as a compact line."""
        line = json.dumps(project_record(record, source), ensure_ascii=False, separators=(",", ":")) + "\n"
        with self._lock:
            if self._fp is None:
                raise RuntimeError(f"{type(self).__name__} is not open")
            self._fp.write(line)
            self.written += 1

    def close(self) -> None:
        """Close any open handle and move the temp file into place."""
        with self._lock:
            if not self._fp:
                return
            try:
                self._fp.close()
            finally:
                self._fp = None
            if self._tmp_path:
                os.replace(self._tmp_path, self._path)
                self._tmp_path = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Ensure resources are closed when used as a context manager."""
        self.close()

    def _open_handle(self, path: Path):
        """Return a write handle for a fresh file path."""
        raise NotImplementedError


class JSONLSink(_BaseJSONLSink):
    """Simple streaming JSONL sink (one record per line)."""

    def _open_handle(self, path: Path):
        return open(path, "w", encoding="utf-8", newline="")


class GzipJSONLSink(_BaseJSONLSink):
    """Streaming JSONL sink that gzip-compresses its output."""

    def _open_handle(self, path: Path):
        return gzip.open(path, "wt", encoding="utf-8", newline="")


class CountingSink:
    """Count records per source and remember their arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_source: dict[str, list[WorkRecord]] = defaultdict(list)
        self.calls = 0

    def accept(self, record: WorkRecord, source: str) -> None:
        with self._lock:
            self._by_source[source].append(record)
            self.calls += 1

    def records_for(self, source: str | os.PathLike[str]) -> list[WorkRecord]:
        with self._lock:
            return list(self._by_source.get(str(source), ()))

    def count_for(self, source: str | os.PathLike[str]) -> int:
        return len(self.records_for(source))

    @property
    def sources(self) -> list[str]:
        with self._lock:
            return sorted(self._by_source)


class MultiSink:
    """Forward each record to several sinks, in the order given."""

    def __init__(self, sinks: Iterable[RecordSink]) -> None:
        self.sinks: Sequence[RecordSink] = tuple(sinks)

    def open(self) -> None:
        for sink in self.sinks:
            opener = getattr(sink, "open", None)
            if callable(opener):
                opener()

    def accept(self, record: WorkRecord, source: str) -> None:
        for sink in self.sinks:
            sink.accept(record, source)

    def close(self) -> None:
        """Close every sink, even when an earlier close raises."""
        with ExitStack() as stack:
            for sink in reversed(self.sinks):
                closer = getattr(sink, "close", None)
                if callable(closer):
                    stack.callback(closer)


class NoopSink:
    """Discard every record."""

    def open(self) -> None:  # noqa: D401
        """Perform no setup."""

    def accept(self, record: WorkRecord, source: str) -> None:
        pass

    def close(self) -> None:  # noqa: D401
        """Perform no teardown."""


__all__ = [
    "LoggingRecordSink",
    "JSONLSink",
    "GzipJSONLSink",
    "CountingSink",
    "MultiSink",
    "NoopSink",
]
