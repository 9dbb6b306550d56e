# log.py
# SPDX-License-Identifier: MIT
"""Utilities for package-wide logging configuration.

Installs a NullHandler on the package logger to avoid noisy warnings from
importing clients and exposes helpers for runtime configuration, the
per-run log file, and temporary level overrides.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "DEFAULT_LOG_FORMAT",
    "get_logger",
    "configure_logging",
    "make_run_log_path",
    "temp_level",
]

PACKAGE_LOGGER_NAME = "gzsieve"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d: %(message)s"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a named logger scoped to gzsieve.

    Args:
        name (str | None): Fully qualified logger name. Defaults to the
            package logger when omitted.

    Returns:
        logging.Logger: Logger instance for the requested name.
    """
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def make_run_log_path(log_dir: str | Path, *, now: datetime | None = None) -> Path:
    """Return a timestamped log path such as ``log/decompression_20240101120000.log``."""
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    return Path(log_dir) / f"decompression_{stamp}.log"


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream=None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    log_file: str | Path | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Configure stream and optional file handlers for a gzsieve logger.

    Every event goes both to ``stream`` and, when ``log_file`` is given,
    to that file opened in append mode. Calling this repeatedly does not
    stack duplicate handlers.

    Args:
        level (int | str): Logging level or level name. Defaults to
            logging.INFO.
        stream (IO[str] | None): Target stream; defaults to sys.stdout.
        fmt (str | None): Log format string. Defaults to
            :data:`DEFAULT_LOG_FORMAT`.
        datefmt (str | None): Date format string for the handlers.
        propagate (bool | None): Whether log records bubble up to ancestor
            loggers. When None, defaults to True to allow root handlers
            (e.g., pytest caplog).
        log_file (str | Path | None): Optional path of an append-mode log
            file. Parent directories are created.
        logger_name (str): Logger name to configure. Defaults to the package
            logger.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = get_logger(logger_name or PACKAGE_LOGGER_NAME)

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    logger.propagate = True if propagate is None else bool(propagate)

    if stream is None:
        stream = sys.stdout
    formatter = logging.Formatter(fmt=fmt or DEFAULT_LOG_FORMAT, datefmt=datefmt)

    # One console handler, rebound to the requested stream on every call.
    has_stream = False
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) or not isinstance(handler, logging.StreamHandler):
            continue
        has_stream = True
        if handler.stream is not stream:
            handler.setStream(stream)
        handler.setFormatter(formatter)
    if not has_stream:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # At most one file handler, matching log_file (none when log_file is None).
    resolved = str(Path(log_file).resolve()) if log_file is not None else None
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != resolved:
            logger.removeHandler(handler)
            handler.close()
    if log_file is not None and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        target = Path(log_file)
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


@contextmanager
def temp_level(level: int | str, name: str | None = None):
    """Temporarily set a logger level inside a context manager.

    Args:
        level (int | str): Logging level or level name to apply.
        name (str | None): Logger name. Defaults to the package logger.

    Yields:
        logging.Logger: Logger with the temporary level applied.
    """
    logger = get_logger(name or PACKAGE_LOGGER_NAME)
    old = logger.level
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    try:
        yield logger
    finally:
        logger.setLevel(old)
