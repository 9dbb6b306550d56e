import gzip
import logging
from pathlib import Path

import pytest

from gzsieve.core.log import PACKAGE_LOGGER_NAME

@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handler and propagation changes made by CLI or config tests."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.NullHandler):
            continue
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def write_gz():
    """Write text (or raw bytes) gzip-compressed to ``path`` and return it."""

    def _write(path: Path, payload: str | bytes) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        with gzip.open(path, "wb") as fh:
            fh.write(data)
        return path

    return _write
