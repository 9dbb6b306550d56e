# concurrency.py
# SPDX-License-Identifier: MIT
"""Concurrency helpers and executor configuration for gzsieve.

Wraps a thread pool executor with a fixed number of admission slots so that
submission never queues more work than the pool was sized for, and provides
the lock-guarded counter used to aggregate per-file outcomes.
"""
from __future__ import annotations

import os
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from .errors import PoolClosedError, PoolSaturatedError
from .log import get_logger

if TYPE_CHECKING:  # pragma: no cover
    from .config import GzSieveConfig

log = get_logger(__name__)

R = TypeVar("R")


class AtomicCounter:
    """Integer counter that is only changed through :meth:`increment`."""

    __slots__ = ("_lock", "_value")

    def __init__(self, initial: int = 0) -> None:
        self._lock = threading.Lock()
        self._value = int(initial)

    def increment(self, n: int = 1) -> int:
        """Add ``n`` and return the new value."""
        with self._lock:
            self._value += n
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"AtomicCounter({self.value})"


def default_worker_count() -> int:
    """Twice the available parallelism, never less than one."""
    return max(1, 2 * (os.cpu_count() or 1))


@dataclass(frozen=True)
class ExecutorConfig:
    """Immutable executor settings used to construct worker pools.

    Attributes:
        max_workers (int): Number of worker threads; ``0`` selects
            :func:`default_worker_count`.
        queue_size (int): Tasks admitted beyond the ones running. ``0``
            leaves pending work unbounded.
        nonblocking (bool): When True, ``submit`` on a full pool raises
            :class:`PoolSaturatedError` instead of waiting for a slot.
    """
    max_workers: int = 0
    queue_size: int = 0
    nonblocking: bool = False

    def resolved_workers(self) -> int:
        return self.max_workers if self.max_workers > 0 else default_worker_count()


class WorkerPool:
    """Fixed-capacity thread pool with explicit admission control.

    Each submitted callable runs to completion on exactly one worker. Slots
    are released when a task finishes, whether it returned or raised.

    Attributes:
        cfg (ExecutorConfig): Configuration for this pool.
        max_workers (int): Resolved number of worker threads.
    """

    def __init__(self, cfg: ExecutorConfig | None = None) -> None:
        self.cfg = cfg or ExecutorConfig()
        self.max_workers = self.cfg.resolved_workers()
        if self.max_workers < 1:
            raise ValueError("WorkerPool requires max_workers >= 1")
        if self.cfg.queue_size < 0:
            raise ValueError("WorkerPool requires queue_size >= 0")
        self._slots: threading.BoundedSemaphore | None = None
        if self.cfg.queue_size:
            self._slots = threading.BoundedSemaphore(self.max_workers + self.cfg.queue_size)
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="gzsieve-worker",
        )
        self._state_lock = threading.Lock()
        self._closed = False
        self._in_flight = 0

    @property
    def capacity(self) -> int | None:
        """Total admission slots, or None when pending work is unbounded."""
        if self._slots is None:
            return None
        return self.max_workers + self.cfg.queue_size

    @property
    def in_flight(self) -> int:
        with self._state_lock:
            return self._in_flight

    @property
    def closed(self) -> bool:
        with self._state_lock:
            return self._closed

    def submit(self, fn: Callable[..., R], /, *args: Any, **kwargs: Any) -> Future[R]:
        """Hand ``fn(*args, **kwargs)`` to the pool and return its future.

        Raises:
            PoolClosedError: If :meth:`shutdown` has been called.
            PoolSaturatedError: If the pool is non-blocking and full.
        """
        if self.closed:
            raise PoolClosedError("pool is closed")
        if self._slots is not None:
            if not self._slots.acquire(blocking=not self.cfg.nonblocking):
                raise PoolSaturatedError(
                    f"pool is saturated ({self.max_workers} workers, {self.cfg.queue_size} queued)"
                )
        try:
            with self._state_lock:
                if self._closed:
                    raise PoolClosedError("pool is closed")
                fut = self._executor.submit(fn, *args, **kwargs)
                self._in_flight += 1
        except Exception:
            if self._slots is not None:
                self._slots.release()
            raise
        fut.add_done_callback(self._on_done)
        return fut

    def _on_done(self, _fut: Future[Any]) -> None:
        with self._state_lock:
            self._in_flight -= 1
        if self._slots is not None:
            self._slots.release()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; when ``wait`` is True block until all tasks finish."""
        with self._state_lock:
            already = self._closed
            self._closed = True
        if not already:
            log.debug("Shutting down worker pool (in_flight=%d)", self.in_flight)
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)


def resolve_executor_config(cfg: GzSieveConfig) -> ExecutorConfig:
    """Build worker pool settings from the pipeline section of a config.

    Args:
        cfg (GzSieveConfig): Top-level configuration object.

    Returns:
        ExecutorConfig: Pool settings with ``max_workers`` resolved.
    """
    pc = cfg.pipeline
    max_workers = pc.max_workers or default_worker_count()
    return ExecutorConfig(
        max_workers=max(1, max_workers),
        queue_size=max(0, pc.queue_size or 0),
        nonblocking=bool(pc.nonblocking),
    )


__all__ = [
    "AtomicCounter",
    "ExecutorConfig",
    "WorkerPool",
    "default_worker_count",
    "resolve_executor_config",
]
