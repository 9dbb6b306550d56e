# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for gzsieve runs.

This module defines declarative dataclasses for discovery, the worker pool,
sinks, and logging, along with helpers for serializing and loading
configurations from JSON and TOML.
"""
from __future__ import annotations

import json
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .log import DEFAULT_LOG_FORMAT, PACKAGE_LOGGER_NAME, configure_logging, make_run_log_path

T = TypeVar("T")

SINK_KINDS = {"log", "jsonl", "jsonl.gz", "parquet", "none"}


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class DiscoveryConfig:
    """Where to look for archives.

    Attributes:
        input_root (Path): Directory walked recursively.
        suffix (str): Filename suffix a file must end with.
        follow_symlinks (bool): Whether to descend into symlinked
            directories and accept symlinked files.
    """
    input_root: Path = Path("input_gz_files")
    suffix: str = ".gz"
    follow_symlinks: bool = False


@dataclass(slots=True)
class PipelineConfig:
    """
    Controls worker pool sizing and per-file delivery.

    max_workers = 0 → auto (2 × os.cpu_count)
    queue_size = 0 → pending work is unbounded; otherwise at most
      max_workers + queue_size tasks are admitted at once
    nonblocking = True → a full pool rejects submissions (counted as
      file failures) instead of making the submitter wait
    collect_failures = True → BatchOutcome.failures lists (path, error)
    atomic_files = True → a file's records reach the sink only after the
      whole file decoded
    """
    max_workers: int = 0
    queue_size: int = 0
    nonblocking: bool = False
    collect_failures: bool = False
    atomic_files: bool = False
    chunk_size: int = 64 * 1024


@dataclass(slots=True)
class SinkConfig:
    """Selects the record sink and where file sinks write.

    Attributes:
        kind (str): One of ``log``, ``jsonl``, ``jsonl.gz``, ``parquet``,
            or ``none``.
        output_dir (Path): Directory for file sinks.
        basename (str): Output file stem for file sinks.
    """
    kind: str = "log"
    output_dir: Path = Path("output")
    basename: str = "records"


@dataclass(slots=True)
class LoggingConfig:
    """Controls the package logger and the per-run log file.

    ``log_path`` wins over ``log_dir``; with neither set (or with
    ``log_to_file`` False) only the console handler is installed.
    """
    level: int | str = "INFO"
    propagate: bool = False
    fmt: Optional[str] = DEFAULT_LOG_FORMAT
    log_dir: Optional[Path] = Path("log")
    log_path: Optional[Path] = None
    log_to_file: bool = True
    logger_name: str = PACKAGE_LOGGER_NAME

    def resolve_log_path(self) -> Optional[Path]:
        """Return the file log events should be appended to, if any."""
        if not self.log_to_file:
            return None
        if self.log_path:
            return Path(self.log_path)
        if self.log_dir:
            return make_run_log_path(self.log_dir)
        return None

    def apply(self, stream=None) -> Optional[Path]:
        """Apply this logging configuration and return the log file path used."""
        log_file = self.resolve_log_path()
        configure_logging(
            level=self.level,
            stream=stream,
            propagate=self.propagate,
            fmt=self.fmt,
            log_file=log_file,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
        )
        return log_file


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class GzSieveConfig:
    """Declarative settings for a gzsieve run.

    Holds only configuration knobs; sinks, pools, and open handles are built
    from it at run time.

    Attributes:
        exit_on_failures (bool): When True the CLI exits non-zero if any
            file failed. The default reports failures but exits 0.
    """
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    sinks: SinkConfig = field(default_factory=SinkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    exit_on_failures: bool = False

    def validate(self) -> None:
        """Validate the configuration for internal consistency.

        Normalizes ``sinks.kind`` to lower case.

        Raises:
            ValueError: On negative pool sizes, an unknown sink kind, or an
                empty discovery suffix.
        """
        pc = self.pipeline
        if pc.max_workers < 0:
            raise ValueError(f"pipeline.max_workers must be >= 0; got {pc.max_workers}.")
        if pc.queue_size < 0:
            raise ValueError(f"pipeline.queue_size must be >= 0; got {pc.queue_size}.")
        if pc.chunk_size < 1:
            raise ValueError(f"pipeline.chunk_size must be >= 1; got {pc.chunk_size}.")
        kind = (self.sinks.kind or "log").strip().lower()
        if kind not in SINK_KINDS:
            raise ValueError(f"sinks.kind must be one of {sorted(SINK_KINDS)}; got {self.sinks.kind!r}.")
        self.sinks.kind = kind
        if not self.discovery.suffix:
            raise ValueError("discovery.suffix must not be empty.")

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this configuration."""
        return _dataclass_to_dict(self)

    def to_json(self, path: Path | str, *, indent: int = 2) -> str:
        """Serialize the configuration to JSON and write it to disk.

        Returns:
            str: String path to the written file.
        """
        target = Path(path)
        target.write_text(json.dumps(self.to_dict(), indent=indent, sort_keys=True), encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        """Instantiate a GzSieveConfig from a mapping.

        Unknown keys are ignored.
        """
        return _dataclass_from_dict(cls, data)

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        """Load a configuration from a JSON file."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """
        Load a GzSieveConfig from a TOML file.

        The TOML layout mirrors the structure of this dataclass: top-level
        tables [discovery], [pipeline], [sinks], and [logging].
        """
        data = tomllib.loads(Path(path).read_bytes().decode("utf-8"))
        if not isinstance(data, Mapping):
            raise TypeError(f"Top-level TOML document must be a mapping; got {type(data).__name__}.")
        return cls.from_dict(data)


def load_config_from_path(path: str | Path) -> GzSieveConfig:
    """Load a GzSieveConfig from a JSON or TOML file.

    Args:
        path (Path | str): Path to a ``.toml`` or ``.json`` config file.

    Returns:
        GzSieveConfig: Parsed configuration instance.

    Raises:
        ValueError: If the file extension is not ``.toml`` or ``.json``.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return GzSieveConfig.from_toml(p)
    if suffix == ".json":
        return GzSieveConfig.from_json(p)
    raise ValueError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")


def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize dataclasses to JSON-friendly dicts, skipping None fields."""
    result: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        result[f.name] = _serialize_value(value)
    return result


def _serialize_value(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items() if v is not None}
    if is_dataclass(value):
        return _dataclass_to_dict(value)
    return value


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate a dataclass of type `cls` from a mapping."""
    if data is None:
        return cls()  # type: ignore[call-arg]
    type_hints = get_type_hints(cls)
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        if f.name not in data:
            continue
        kwargs[f.name] = _coerce_value(type_hints.get(f.name, f.type), data[f.name])
    return cls(**kwargs)  # type: ignore[arg-type]


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce `value` into the shape implied by `expected_type`."""
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if isinstance(base_type, type) and is_dataclass(base_type):
        return _dataclass_from_dict(base_type, value)
    if base_type is Path:
        return Path(value)
    if base_type is bool and isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if base_type in {str, int, float, bool}:
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Strip Optional from a type annotation.

    Returns:
        tuple[Any, bool]: ``(base_type, is_optional)``.
    """
    args = get_args(typ)
    if get_origin(typ) is Union or (args and type(None) in args):
        non_none = [arg for arg in args if arg is not type(None)]
        if len(non_none) == 1:
            return non_none[0], True
    return typ, False


__all__ = [
    "GzSieveConfig",
    "DiscoveryConfig",
    "PipelineConfig",
    "SinkConfig",
    "LoggingConfig",
    "SINK_KINDS",
    "load_config_from_path",
]
