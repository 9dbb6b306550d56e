import json
import logging
from pathlib import Path

import pytest

from gzsieve.core.concurrency import ExecutorConfig, WorkerPool
from gzsieve.core.errors import (
    BatchFailedError,
    DecodeError,
    DecompressionError,
    OpenError,
    PoolClosedError,
    PoolSaturatedError,
)
from gzsieve.core.interfaces import Task
from gzsieve.core.pipeline import BatchCoordinator, BatchOutcome, process_file
from gzsieve.sinks.sinks import CountingSink


def _envelope(*dois: str) -> str:
    return json.dumps({"items": [{"DOI": d, "title": [d], "references-count": 1} for d in dois]})


def _make_tree(tmp_path: Path, write_gz, *, good: int, corrupt: int) -> list[Path]:
    files = []
    for i in range(good):
        files.append(write_gz(tmp_path / f"good_{i:02d}.gz", _envelope(f"{i}-a", f"{i}-b")))
    for i in range(corrupt):
        bad = tmp_path / f"bad_{i:02d}.gz"
        bad.write_bytes(b"this is not a gzip stream")
        files.append(bad)
    return sorted(files)


def _abc_tree(tmp_path: Path, write_gz) -> tuple[Path, Path, Path]:
    a = write_gz(tmp_path / "a.gz", _envelope("a1", "a2") + "\n" + _envelope("a3"))
    b = write_gz(tmp_path / "b.gz", "")
    c = write_gz(tmp_path / "c.gz", _envelope("c1") + "\n" + _envelope("c2")[:-4])
    return a, b, c


class _RejectingPool(WorkerPool):
    """Pool that refuses one file at submission time."""

    def __init__(self, cfg, reject: str):
        super().__init__(cfg)
        self.reject = reject

    def submit(self, fn, /, *args, **kwargs):
        task = args[0]
        if Path(task.source_path).name == self.reject:
            raise PoolSaturatedError("pool is saturated", path=task.source_path)
        return super().submit(fn, *args, **kwargs)


class _ExplodingSink(CountingSink):
    def __init__(self, bad_name: str):
        super().__init__()
        self.bad_name = bad_name

    def accept(self, record, source):
        if Path(source).name == self.bad_name:
            raise RuntimeError("sink refused record")
        super().accept(record, source)


@pytest.mark.parametrize("workers", [1, 2, 3, 4, 5, 6])
def test_failure_count_matches_corrupt_files_for_any_pool_size(tmp_path, write_gz, workers):
    files = _make_tree(tmp_path, write_gz, good=4, corrupt=2)
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=workers)).run(files)
    assert outcome.total_submitted == 6
    assert outcome.failed_count == 2
    assert outcome.succeeded_count == 4
    assert outcome.records.value == 8
    assert sink.calls == 8


def test_zero_record_stream_is_a_success(tmp_path, write_gz):
    path = write_gz(tmp_path / "empty_items.gz", _envelope() + "\n")
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=2)).run([path])
    assert outcome.ok
    assert sink.calls == 0


def test_records_delivered_in_source_order(tmp_path, write_gz):
    dois = [f"10.1/{i}" for i in range(25)]
    payload = "".join(_envelope(*dois[i : i + 4]) for i in range(0, len(dois), 4))
    path = write_gz(tmp_path / "ordered.gz", payload)
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=4), chunk_size=7).run([path])
    assert outcome.ok
    assert [r.doi for r in sink.records_for(path)] == dois


def test_truncated_file_fails_alone(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=3, corrupt=0)
    trunc = write_gz(tmp_path / "trunc.gz", _envelope("t1", "t2")[:-3])
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=2)).run(files + [trunc])
    assert outcome.failed_count == 1
    for path in files:
        assert sink.count_for(path) == 2
    assert sink.count_for(trunc) == 0


def test_more_files_than_workers_completes(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=40, corrupt=5)
    sink = CountingSink()
    coordinator = BatchCoordinator(sink, ExecutorConfig(max_workers=2, queue_size=1))
    outcome = coordinator.run(files)
    assert outcome.total_submitted == 45
    assert outcome.failed_count == 5
    assert sink.calls == 80


def test_repeated_runs_give_same_failure_count(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=5, corrupt=3)
    coordinator = BatchCoordinator(CountingSink(), ExecutorConfig(max_workers=3))
    counts = {coordinator.run(files).failed_count for _ in range(3)}
    assert counts == {3}


def test_end_to_end_three_files(tmp_path, write_gz):
    a, b, c = _abc_tree(tmp_path, write_gz)
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=2)).run([a, b, c])
    assert sink.count_for(a) == 3
    assert sink.count_for(b) == 0
    assert outcome.failed_count == 1
    assert outcome.total_submitted == 3
    # c streams its first complete record before the truncation is found.
    assert [r.doi for r in sink.records_for(c)] == ["c1"]


def test_atomic_files_withholds_records_of_failed_file(tmp_path, write_gz):
    a, b, c = _abc_tree(tmp_path, write_gz)
    sink = CountingSink()
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=2), atomic_files=True).run([a, b, c])
    assert outcome.failed_count == 1
    assert sink.count_for(a) == 3
    assert sink.count_for(c) == 0


def test_collect_failures_records_path_and_error_kind(tmp_path, write_gz):
    a, b, c = _abc_tree(tmp_path, write_gz)
    not_gzip = tmp_path / "plain.gz"
    not_gzip.write_bytes(b"plain")
    zero = tmp_path / "zero.gz"
    zero.write_bytes(b"")
    missing = tmp_path / "missing.gz"
    files = [a, b, c, not_gzip, zero, missing]

    outcome = BatchCoordinator(CountingSink(), ExecutorConfig(max_workers=3), collect_failures=True).run(files)
    assert outcome.failed_count == 4
    kinds = {Path(f.path).name: type(f.error) for f in outcome.failures}
    assert kinds == {
        "c.gz": DecodeError,
        "plain.gz": DecompressionError,
        "zero.gz": DecompressionError,
        "missing.gz": OpenError,
    }
    data = outcome.as_dict()
    assert data["files"] == 6
    assert data["failed"] == 4
    assert {Path(f["path"]).name for f in data["failures"]} == set(kinds)


def test_failures_not_collected_by_default(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=1, corrupt=1)
    outcome = BatchCoordinator(CountingSink(), ExecutorConfig(max_workers=1)).run(files)
    assert outcome.failures is None
    assert "failures" not in outcome.as_dict()


def test_submission_failure_is_counted_and_loop_continues(tmp_path, write_gz, caplog):
    files = _make_tree(tmp_path, write_gz, good=3, corrupt=0)

    class Coordinator(BatchCoordinator):
        def _make_pool(self):
            return _RejectingPool(self.executor_cfg, reject="good_01.gz")

    caplog.set_level(logging.INFO, logger="gzsieve")
    sink = CountingSink()
    outcome = Coordinator(sink, ExecutorConfig(max_workers=2), collect_failures=True).run(files)
    assert outcome.total_submitted == 3
    assert outcome.failed_count == 1
    assert isinstance(outcome.failures[0].error, PoolSaturatedError)
    assert sink.calls == 4
    assert "Failed to submit task for file" in caplog.text


def test_closed_pool_fails_every_submission(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=2, corrupt=0)

    class Coordinator(BatchCoordinator):
        def _make_pool(self):
            pool = WorkerPool(self.executor_cfg)
            pool.shutdown()
            return pool

    outcome = Coordinator(CountingSink(), ExecutorConfig(max_workers=1), collect_failures=True).run(files)
    assert outcome.failed_count == 2
    assert all(isinstance(f.error, PoolClosedError) for f in outcome.failures)


def test_sink_exception_fails_only_that_file(tmp_path, write_gz):
    files = _make_tree(tmp_path, write_gz, good=3, corrupt=0)
    sink = _ExplodingSink("good_02.gz")
    outcome = BatchCoordinator(sink, ExecutorConfig(max_workers=3), collect_failures=True).run(files)
    assert outcome.failed_count == 1
    assert Path(outcome.failures[0].path).name == "good_02.gz"
    assert isinstance(outcome.failures[0].error, RuntimeError)
    assert sink.calls == 4


def test_run_logs_each_file_and_each_error(tmp_path, write_gz, caplog):
    files = _make_tree(tmp_path, write_gz, good=1, corrupt=1)
    caplog.set_level(logging.INFO, logger="gzsieve")
    BatchCoordinator(CountingSink(), ExecutorConfig(max_workers=1)).run(files)
    for path in files:
        assert f"Processing file: {path}" in caplog.text
    assert f"Error processing file {files[0]}" in caplog.text


def test_empty_file_list_is_ok():
    outcome = BatchCoordinator(CountingSink(), ExecutorConfig(max_workers=1)).run([])
    assert outcome.ok
    assert outcome.total_submitted == 0


def test_process_file_returns_record_count(tmp_path, write_gz):
    path = write_gz(tmp_path / "x.gz", _envelope("1", "2", "3"))
    sink = CountingSink()
    assert process_file(Task.for_path(path), sink) == 3
    assert sink.sources == [str(path)]


def test_process_file_error_kinds(tmp_path):
    with pytest.raises(OpenError) as excinfo:
        process_file(Task.for_path(tmp_path / "nope.gz"), CountingSink())
    assert "failed to open gzip file" in str(excinfo.value)

    zero = tmp_path / "zero.gz"
    zero.write_bytes(b"")
    with pytest.raises(DecompressionError):
        process_file(Task.for_path(zero), CountingSink())


def test_raise_for_failures():
    outcome = BatchOutcome(total_submitted=3)
    outcome.raise_for_failures()
    outcome.record_failure("a.gz", ValueError("x"))
    outcome.record_failure("b.gz", ValueError("y"))
    with pytest.raises(BatchFailedError) as excinfo:
        outcome.raise_for_failures()
    assert str(excinfo.value) == "encountered 2 errors during decompression"
    assert excinfo.value.failed == 2
    assert excinfo.value.total == 3
