import io
import logging
from datetime import datetime
from pathlib import Path

from gzsieve.core.log import PACKAGE_LOGGER_NAME, configure_logging, make_run_log_path, temp_level


def _handlers(kind):
    return [h for h in logging.getLogger(PACKAGE_LOGGER_NAME).handlers if type(h) is kind]


def test_make_run_log_path_uses_timestamp():
    path = make_run_log_path("log", now=datetime(2024, 3, 5, 7, 8, 9))
    assert path == Path("log") / "decompression_20240305070809.log"


def test_configure_logging_is_idempotent_and_rebinds_stream():
    first, second = io.StringIO(), io.StringIO()
    configure_logging(level="INFO", stream=first)
    configure_logging(level="INFO", stream=second)
    assert len(_handlers(logging.StreamHandler)) == 1
    logging.getLogger("gzsieve.sample").info("routed")
    assert "routed" in second.getvalue()
    assert "routed" not in first.getvalue()


def test_file_handler_tees_and_is_replaced(tmp_path):
    stream = io.StringIO()
    one, two = tmp_path / "logs" / "one.log", tmp_path / "two.log"
    configure_logging(stream=stream, log_file=one)
    configure_logging(stream=stream, log_file=one)
    assert len(_handlers(logging.FileHandler)) == 1
    logging.getLogger("gzsieve.sample").warning("first")

    configure_logging(stream=stream, log_file=two)
    logging.getLogger("gzsieve.sample").warning("second")
    configure_logging(stream=stream)
    assert _handlers(logging.FileHandler) == []

    assert "first" in one.read_text(encoding="utf-8")
    assert "second" not in one.read_text(encoding="utf-8")
    assert "second" in two.read_text(encoding="utf-8")
    assert "first" in stream.getvalue() and "second" in stream.getvalue()


def test_configure_logging_format_and_level():
    stream = io.StringIO()
    configure_logging(level="warning", stream=stream, fmt="%(levelname)s|%(message)s")
    log = logging.getLogger("gzsieve.sample")
    log.info("hidden")
    log.error("shown")
    assert stream.getvalue() == "ERROR|shown\n"


def test_temp_level_restores_previous_level():
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(logging.WARNING)
    with temp_level("DEBUG") as lg:
        assert lg.level == logging.DEBUG
    assert logger.level == logging.WARNING
