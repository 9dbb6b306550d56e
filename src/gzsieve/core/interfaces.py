# interfaces.py
# SPDX-License-Identifier: MIT
"""Interfaces and protocols shared by discovery, the coordinator, and sinks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .records import WorkRecord


# -----------------------------------------------------------------------------
# Shared data types
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Task:
    """
    One unit of work: a single source file to process.

    Created by the coordinator at submission time and handed to exactly one
    worker as an argument.

    Attributes:
        source_path (str): Path of the compressed file, as discovered.
    """
    source_path: str

    @classmethod
    def for_path(cls, path: str | Path) -> "Task":
        return cls(source_path=str(path))


# -----------------------------------------------------------------------------
# Collaborator protocols
# -----------------------------------------------------------------------------


@runtime_checkable
class RecordSink(Protocol):
    """Consumer of decoded records.

    Called concurrently from every worker; implementations must be safe
    under concurrent invocation and must not block indefinitely. Within one
    source file, calls arrive in source order.
    """

    def accept(self, record: "WorkRecord", source: str) -> None:
        """Consume one record decoded from ``source``."""
        ...


@runtime_checkable
class Discoverer(Protocol):
    """Lists the files a run should process.

    Raising :class:`~gzsieve.core.errors.DiscoveryError` aborts the run
    before any task is submitted.
    """

    def list_files(self, root: str | Path) -> Sequence[Path]:
        ...


__all__ = ["Task", "RecordSink", "Discoverer"]
