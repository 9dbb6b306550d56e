# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`gzsieve`.

gzsieve walks a directory tree for gzip archives, decompresses each one as a
stream, decodes the JSON values inside, and hands every work record to a
sink. Files are processed on a bounded thread pool; a broken file is logged
and counted without stopping the batch.

Examples:
    Config-driven run::

        >>> from gzsieve import GzSieveConfig, run_batch
        >>> cfg = GzSieveConfig()
        >>> cfg.discovery.input_root = "input_gz_files"
        >>> outcome = run_batch(cfg)
        >>> outcome.failed_count
        0

    Driving the coordinator directly::

        >>> from gzsieve import BatchCoordinator, CountingSink, ExecutorConfig, discover_files
        >>> sink = CountingSink()
        >>> outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=4)).run(
        ...     discover_files("input_gz_files")
        ... )
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("gzsieve")
except Exception:  # PackageNotFoundError or runtime env oddities
    __version__ = "0.0.0+unknown"

from .cli.runner import report_outcome, run_batch
from .core.concurrency import AtomicCounter, ExecutorConfig, WorkerPool
from .core.config import GzSieveConfig, load_config_from_path
from .core.decode import StreamDecoder, open_gzip_stream
from .core.errors import (
    BatchFailedError,
    DecodeError,
    DecompressionError,
    DiscoveryError,
    FileProcessingError,
    GzSieveError,
    OpenError,
    PoolClosedError,
    PoolSaturatedError,
    SubmissionError,
)
from .core.interfaces import Discoverer, RecordSink, Task
from .core.log import configure_logging, get_logger
from .core.pipeline import BatchCoordinator, BatchOutcome, FileFailure, process_file
from .core.records import AuthorName, DecodedBatch, WorkRecord
from .sinks.sinks import CountingSink, GzipJSONLSink, JSONLSink, LoggingRecordSink, MultiSink, NoopSink
from .sources.fs import SuffixFileDiscoverer, discover_files

__all__ = [
    "__version__",
    "GzSieveConfig",
    "load_config_from_path",
    "run_batch",
    "report_outcome",
    "BatchCoordinator",
    "BatchOutcome",
    "FileFailure",
    "process_file",
    "Task",
    "RecordSink",
    "Discoverer",
    "WorkerPool",
    "ExecutorConfig",
    "AtomicCounter",
    "StreamDecoder",
    "open_gzip_stream",
    "WorkRecord",
    "AuthorName",
    "DecodedBatch",
    "discover_files",
    "SuffixFileDiscoverer",
    "LoggingRecordSink",
    "JSONLSink",
    "GzipJSONLSink",
    "CountingSink",
    "MultiSink",
    "NoopSink",
    "configure_logging",
    "get_logger",
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
