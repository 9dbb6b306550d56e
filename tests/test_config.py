import io
import logging
from pathlib import Path

import pytest

from gzsieve.core.config import GzSieveConfig, LoggingConfig, load_config_from_path


def test_defaults_match_expected_layout():
    cfg = GzSieveConfig()
    assert cfg.discovery.input_root == Path("input_gz_files")
    assert cfg.discovery.suffix == ".gz"
    assert cfg.pipeline.max_workers == 0
    assert cfg.sinks.kind == "log"
    assert cfg.logging.log_dir == Path("log")
    assert cfg.exit_on_failures is False
    cfg.validate()


def test_from_toml_reads_all_tables(tmp_path):
    path = tmp_path / "gzsieve.toml"
    path.write_text(
        """
exit_on_failures = true

[discovery]
input_root = "data/in"
suffix = ".json.gz"

[pipeline]
max_workers = 3
queue_size = 6
collect_failures = "yes"

[sinks]
kind = "JSONL"
output_dir = "data/out"

[logging]
level = "DEBUG"
log_to_file = false
unknown_key = 1
""",
        encoding="utf-8",
    )
    cfg = load_config_from_path(path)
    assert cfg.exit_on_failures is True
    assert cfg.discovery.input_root == Path("data/in")
    assert cfg.discovery.suffix == ".json.gz"
    assert cfg.pipeline.max_workers == 3
    assert cfg.pipeline.queue_size == 6
    assert cfg.pipeline.collect_failures is True
    assert cfg.sinks.output_dir == Path("data/out")
    assert cfg.logging.level == "DEBUG"
    assert cfg.logging.resolve_log_path() is None
    cfg.validate()
    assert cfg.sinks.kind == "jsonl"


def test_json_round_trip(tmp_path):
    cfg = GzSieveConfig()
    cfg.pipeline.atomic_files = True
    cfg.sinks.kind = "parquet"
    path = tmp_path / "cfg.json"
    cfg.to_json(path)
    loaded = load_config_from_path(path)
    assert loaded.pipeline.atomic_files is True
    assert loaded.sinks.kind == "parquet"
    assert loaded.to_dict() == cfg.to_dict()


def test_unsupported_extension(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("x: 1", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_from_path(path)


@pytest.mark.parametrize(
    "section, name, value",
    [
        ("pipeline", "max_workers", -1),
        ("pipeline", "queue_size", -2),
        ("pipeline", "chunk_size", 0),
        ("sinks", "kind", "csv"),
        ("discovery", "suffix", ""),
    ],
)
def test_validate_rejects_bad_values(section, name, value):
    cfg = GzSieveConfig()
    setattr(getattr(cfg, section), name, value)
    with pytest.raises(ValueError):
        cfg.validate()


def test_log_path_resolution(tmp_path):
    lc = LoggingConfig(log_dir=tmp_path / "log")
    resolved = lc.resolve_log_path()
    assert resolved.parent == tmp_path / "log"
    assert resolved.name.startswith("decompression_")
    assert resolved.suffix == ".log"

    lc.log_path = tmp_path / "fixed.log"
    assert lc.resolve_log_path() == tmp_path / "fixed.log"

    lc.log_to_file = False
    assert lc.resolve_log_path() is None

    assert LoggingConfig(log_dir=None).resolve_log_path() is None


def test_logging_apply_installs_file_handler(tmp_path):
    stream = io.StringIO()
    lc = LoggingConfig(log_path=tmp_path / "run.log", propagate=True)
    log_file = lc.apply(stream=stream)
    assert log_file == tmp_path / "run.log"
    logging.getLogger("gzsieve.test").info("hello file")
    for handler in logging.getLogger("gzsieve").handlers:
        handler.flush()
    assert "hello file" in stream.getvalue()
    assert "hello file" in (tmp_path / "run.log").read_text(encoding="utf-8")
