# runner.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path

from ..core.concurrency import resolve_executor_config
from ..core.config import GzSieveConfig
from ..core.factories import build_sink
from ..core.interfaces import Discoverer, RecordSink
from ..core.log import get_logger
from ..core.pipeline import BatchCoordinator, BatchOutcome
from ..sources.fs import SuffixFileDiscoverer

log = get_logger(__name__)


def _enter_sink(stack: ExitStack, sink: RecordSink) -> RecordSink:
    """Open a sink if it has lifecycle hooks and register its close()."""
    opener = getattr(sink, "open", None)
    if callable(opener):
        opener()
    closer = getattr(sink, "close", None)
    if callable(closer):
        stack.callback(closer)
    return sink


def run_batch(
    cfg: GzSieveConfig,
    *,
    sink: RecordSink | None = None,
    discoverer: Discoverer | None = None,
    input_root: str | Path | None = None,
) -> BatchOutcome:
    """Discover archives and run them through the batch coordinator.

    This is the main programmatic entry point. Discovery happens before the
    worker pool exists, so a :class:`~gzsieve.core.errors.DiscoveryError`
    propagates without any task having been attempted. Per-file failures
    never raise; inspect the returned outcome instead.

    Args:
        cfg (GzSieveConfig): Run configuration; validated here.
        sink (RecordSink | None): Sink to use instead of the one built
            from ``cfg.sinks``. Its ``open``/``close`` hooks are still driven
            by this function when present.
        discoverer (Discoverer | None): Alternative file discovery.
        input_root (str | Path | None): Overrides
            ``cfg.discovery.input_root``.

    Returns:
        BatchOutcome: Aggregate counts for the run.

    Raises:
        DiscoveryError: If the input tree cannot be listed.
        ValueError: If the configuration is invalid.
    """
    cfg.validate()
    root = Path(input_root) if input_root is not None else Path(cfg.discovery.input_root)
    finder = discoverer or SuffixFileDiscoverer(
        suffix=cfg.discovery.suffix,
        follow_symlinks=cfg.discovery.follow_symlinks,
    )
    files = list(finder.list_files(root))

    pc = cfg.pipeline
    coordinator = BatchCoordinator(
        sink if sink is not None else build_sink(cfg.sinks),
        resolve_executor_config(cfg),
        collect_failures=pc.collect_failures,
        atomic_files=pc.atomic_files,
        chunk_size=pc.chunk_size,
    )
    log.debug(
        "Running %d files with %d workers", len(files), coordinator.executor_cfg.resolved_workers()
    )
    with ExitStack() as stack:
        _enter_sink(stack, coordinator.sink)
        return coordinator.run(files)


def report_outcome(outcome: BatchOutcome, elapsed: float | None = None) -> None:
    """Log the end-of-run summary lines."""
    if outcome.ok:
        log.info("All files successfully decompressed and processed!")
    else:
        log.error(
            "Error during concurrent file decompression: encountered %d errors during decompression",
            outcome.failed_count,
        )
        for failure in outcome.failures or ():
            log.error("  failed: %s", failure)
    log.info("Time: %.3fs", outcome.elapsed if elapsed is None else elapsed)


__all__ = ["run_batch", "report_outcome"]
