# errors.py
# SPDX-License-Identifier: MIT
"""Exception hierarchy for discovery, submission, and per-file failures.

Only :class:`DiscoveryError` is fatal to a run. Everything derived from
:class:`SubmissionError` or :class:`FileProcessingError` is counted against
the file it concerns and the batch moves on.
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "GzSieveError",
    "DiscoveryError",
    "SubmissionError",
    "PoolClosedError",
    "PoolSaturatedError",
    "FileProcessingError",
    "OpenError",
    "DecompressionError",
    "DecodeError",
    "BatchFailedError",
]


class GzSieveError(Exception):
    """Base exception for gzsieve errors.

    Attributes:
        message (str): Human-readable error description.
        path (str | None): File or directory the error concerns, if any.
        cause (BaseException | None): Wrapped lower-level exception.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | Path | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.path = str(path) if path is not None else None
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        text = self.message
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        if self.path:
            text = f"{text}, filepath {self.path}"
        return text


class DiscoveryError(GzSieveError):
    """The input tree could not be walked; no tasks are attempted."""


class SubmissionError(GzSieveError):
    """The worker pool refused a task."""


class PoolClosedError(SubmissionError):
    """Raised by ``submit`` after the pool has been shut down."""


class PoolSaturatedError(SubmissionError):
    """Raised by a non-blocking pool when every slot is taken."""


class FileProcessingError(GzSieveError):
    """A single file failed; counted against that file only."""


class OpenError(FileProcessingError):
    """The source file could not be opened."""


class DecompressionError(FileProcessingError):
    """Invalid or truncated gzip header or stream."""


class DecodeError(FileProcessingError):
    """Structurally invalid record data, including truncation mid-record."""


class BatchFailedError(GzSieveError):
    """Aggregate failure for a run in which at least one file failed."""

    def __init__(self, failed: int, total: int) -> None:
        self.failed = int(failed)
        self.total = int(total)
        super().__init__(f"encountered {self.failed} errors during decompression")
