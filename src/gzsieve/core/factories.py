# factories.py
# SPDX-License-Identifier: MIT
"""Factories that turn declarative sink settings into sink instances."""

from __future__ import annotations

from pathlib import Path

from .config import SINK_KINDS, SinkConfig
from .interfaces import RecordSink
from .log import get_logger

log = get_logger(__name__)

_SUFFIXES = {"jsonl": ".jsonl", "jsonl.gz": ".jsonl.gz", "parquet": ".parquet"}


def sink_output_path(cfg: SinkConfig) -> Path | None:
    """Return the file a file-backed sink kind writes to, else None."""
    suffix = _SUFFIXES.get(cfg.kind)
    if suffix is None:
        return None
    return Path(cfg.output_dir) / f"{cfg.basename}{suffix}"


def build_sink(cfg: SinkConfig) -> RecordSink:
    """Construct the sink selected by ``cfg.kind``.

    The parquet sink is imported lazily so ``pyarrow`` is only required
    when it is selected.

    Raises:
        ValueError: For an unknown sink kind.
    """
    kind = (cfg.kind or "log").strip().lower()
    if kind not in SINK_KINDS:
        raise ValueError(f"Unknown sink kind {cfg.kind!r}; expected one of {sorted(SINK_KINDS)}")

    from ..sinks.sinks import GzipJSONLSink, JSONLSink, LoggingRecordSink, NoopSink

    if kind == "log":
        return LoggingRecordSink()
    if kind == "none":
        return NoopSink()
    out_path = sink_output_path(SinkConfig(kind=kind, output_dir=cfg.output_dir, basename=cfg.basename))
    assert out_path is not None
    log.debug("Sink %s writing to %s", kind, out_path)
    if kind == "jsonl":
        return JSONLSink(out_path)
    if kind == "jsonl.gz":
        return GzipJSONLSink(out_path)
    from ..sinks.parquet import ParquetSink

    return ParquetSink(out_path)


__all__ = ["build_sink", "sink_output_path"]
