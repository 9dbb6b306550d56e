# pipeline.py
# SPDX-License-Identifier: MIT
"""Batch coordinator: one task per discovered file, failures folded into counts."""

from __future__ import annotations

import functools
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .concurrency import AtomicCounter, ExecutorConfig, WorkerPool
from .decode import DEFAULT_CHUNK_SIZE, StreamDecoder, open_gzip_stream
from .errors import BatchFailedError, FileProcessingError, OpenError
from .interfaces import RecordSink, Task
from .log import get_logger
from .records import WorkRecord

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FileFailure:
    """Which file failed and why."""

    path: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


@dataclass
class BatchOutcome:
    """Aggregate result of one run.

    ``failed`` and ``records`` are only ever changed through their
    increment API; workers never touch the other fields. ``total_submitted``
    counts every file the coordinator tried to submit, including rejected
    submissions, and is bumped before the matching task can fail.
    """

    total_submitted: int = 0
    failed: AtomicCounter = field(default_factory=AtomicCounter)
    records: AtomicCounter = field(default_factory=AtomicCounter)
    elapsed: float = 0.0
    failures: list[FileFailure] | None = None
    _failures_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    @property
    def failed_count(self) -> int:
        return self.failed.value

    @property
    def succeeded_count(self) -> int:
        return self.total_submitted - self.failed.value

    @property
    def ok(self) -> bool:
        return self.failed.value == 0

    def record_failure(self, path: str, error: BaseException) -> int:
        """Count a failed file; keep its detail when failures are collected."""
        if self.failures is not None:
            with self._failures_lock:
                self.failures.append(FileFailure(path=path, error=error))
        return self.failed.increment()

    def raise_for_failures(self) -> None:
        """Raise :class:`BatchFailedError` when any file failed."""
        if not self.ok:
            raise BatchFailedError(self.failed.value, self.total_submitted)

    def as_dict(self) -> dict[str, Any]:
        """Return a stable dict shape for reporting."""
        data: dict[str, Any] = {
            "files": int(self.total_submitted),
            "failed": int(self.failed.value),
            "records": int(self.records.value),
            "elapsed_seconds": round(float(self.elapsed), 6),
        }
        if self.failures is not None:
            data["failures"] = [{"path": f.path, "error": str(f.error)} for f in self.failures]
        return data


def process_file(
    task: Task,
    sink: RecordSink,
    *,
    atomic: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> int:
    """Decode one archive and hand each record to ``sink``.

    Records are delivered in source order. With ``atomic`` they are held back
    until the whole file has decoded, so a failing file delivers nothing.

    Args:
        task (Task): File to process.
        sink (RecordSink): Receives ``(record, task.source_path)`` pairs.
        atomic (bool): Deliver only after a successful full decode.
        chunk_size (int): Decompressed bytes per read.

    Returns:
        int: Number of records delivered.

    Raises:
        OpenError: If the file cannot be opened.
        DecompressionError: On a malformed or truncated gzip stream.
        DecodeError: On invalid or truncated JSON.
    """
    source = task.source_path
    try:
        fp = open(source, "rb")
    except OSError as exc:
        raise OpenError("failed to open gzip file", path=source, cause=exc) from exc
    with fp:
        with open_gzip_stream(fp, source=source) as gz:
            decoder = StreamDecoder(gz, source=source, chunk_size=chunk_size)
            if atomic:
                pending: list[WorkRecord] = list(decoder.iter_records())
                for record in pending:
                    sink.accept(record, source)
                return len(pending)
            delivered = 0
            for record in decoder.iter_records():
                sink.accept(record, source)
                delivered += 1
            return delivered


class BatchCoordinator:
    """Owns the worker pool for one run and folds task outcomes into counts.

    The coordinator never raises for a single file. Per-file detail is
    logged when it happens; the returned :class:`BatchOutcome` carries the
    count, plus ``(path, error)`` pairs when ``collect_failures`` is set.

    Attributes:
        sink (RecordSink): Destination for every decoded record.
        executor_cfg (ExecutorConfig): Pool sizing.
        collect_failures (bool): Keep per-file failure detail.
        atomic_files (bool): All-or-nothing delivery per file.
        chunk_size (int): Decompressed bytes per read.
    """

    def __init__(
        self,
        sink: RecordSink,
        executor_cfg: ExecutorConfig | None = None,
        *,
        collect_failures: bool = False,
        atomic_files: bool = False,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.sink = sink
        self.executor_cfg = executor_cfg or ExecutorConfig()
        self.collect_failures = collect_failures
        self.atomic_files = atomic_files
        self.chunk_size = chunk_size

    def _make_pool(self) -> WorkerPool:
        return WorkerPool(self.executor_cfg)

    def _on_task_done(self, task: Task, outcome: BatchOutcome, fut: Future[int]) -> None:
        exc = fut.exception()
        if exc is None:
            n = fut.result()
            outcome.records.increment(n)
            log.debug("Finished file %s: records=%d", task.source_path, n)
            return
        if not isinstance(exc, FileProcessingError):
            # Sink failures and other unexpected errors still count per file.
            log.debug("Unexpected error type for %s", task.source_path, exc_info=exc)
        log.error("Error processing file %s: %s", task.source_path, exc)
        outcome.record_failure(task.source_path, exc)

    def run(self, files: Iterable[str | Path]) -> BatchOutcome:
        """Process every file and return the aggregate outcome.

        Files are submitted in the given order; completion order is
        unspecified. Submission failures are counted like task failures and
        never stop the loop. The pool is always shut down, waiting for
        in-flight tasks, before this returns or raises.

        Args:
            files (Iterable[str | Path]): Paths in discovery order.

        Returns:
            BatchOutcome: Totals for this run.
        """
        outcome = BatchOutcome(failures=[] if self.collect_failures else None)
        start = time.perf_counter()
        with self._make_pool() as pool:
            for path in files:
                task = Task.for_path(path)
                log.info("Processing file: %s", task.source_path)
                outcome.total_submitted += 1
                try:
                    fut = pool.submit(
                        process_file,
                        task,
                        self.sink,
                        atomic=self.atomic_files,
                        chunk_size=self.chunk_size,
                    )
                except Exception as exc:  # noqa: BLE001
                    log.error("Failed to submit task for file %s: %s", task.source_path, exc)
                    outcome.record_failure(task.source_path, exc)
                    continue
                fut.add_done_callback(functools.partial(self._on_task_done, task, outcome))
        outcome.elapsed = time.perf_counter() - start
        if outcome.ok:
            log.debug("Batch finished: %s", outcome.as_dict())
        else:
            log.warning(
                "Batch finished with %d failed of %d files",
                outcome.failed_count,
                outcome.total_submitted,
            )
        return outcome


__all__ = [
    "BatchCoordinator",
    "BatchOutcome",
    "FileFailure",
    "process_file",
]
