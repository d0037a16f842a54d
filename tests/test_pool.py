# tests/test_pool.py
from __future__ import annotations

import os
import sys
import time
from pathlib import Path

import pytest

from checkforge.executor.pool import WorkerOutcome, WorkerPool


class Recorder:
    def __init__(self) -> None:
        self.outcomes: dict[int, WorkerOutcome] = {}
        self.calls: list[int] = []

    def __call__(self, ident: int, outcome: WorkerOutcome) -> None:
        self.calls.append(ident)
        self.outcomes[ident] = outcome


def _drain(pool: WorkerPool, limit: float = 10.0) -> None:
    give_up = time.monotonic() + limit
    while pool.has_live_workers():
        if time.monotonic() > give_up:
            raise AssertionError("workers did not finish in time")
        pool.wait(0.1)
        pool.reap_finished()


def test_reap_with_no_workers_is_a_noop(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        assert pool.reap_finished() == 0
        assert pool.reap_finished() == 0
        assert not pool.has_live_workers()
    assert rec.calls == []


def test_returned_value_is_delivered_once(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        assert pool.submit(0, lambda: {"id": "a", "status": "OK"})
        assert pool.submit(1, lambda: {"id": "b", "status": "OK"})
        _drain(pool)

    assert sorted(rec.calls) == [0, 1]
    assert rec.outcomes[0].result == {"id": "a", "status": "OK"}
    assert rec.outcomes[1].result == {"id": "b", "status": "OK"}
    assert rec.outcomes[0].exitcode == 0
    assert rec.outcomes[0].has_result


def test_body_runs_in_another_process(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        pool.submit(0, os.getpid)
        _drain(pool)

    assert rec.outcomes[0].result != os.getpid()


def test_exit_code_is_reported_without_result(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        pool.submit(0, lambda: sys.exit(111))
        _drain(pool)

    outcome = rec.outcomes[0]
    assert outcome.exitcode == 111
    assert not outcome.has_result
    assert outcome.result is None
    assert not outcome.killed


def test_child_init_runs_before_body(tmp_path: Path) -> None:
    marker = tmp_path / "init.txt"
    rec = Recorder()

    def init() -> None:
        marker.write_text("init", encoding="utf-8")

    def body() -> str:
        return marker.read_text(encoding="utf-8")

    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        pool.submit(0, body, child_init=init)
        _drain(pool)

    assert rec.outcomes[0].result == "init"


def test_failing_child_init_looks_like_any_crash(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(2, rec, tempdir=tmp_path) as pool:
        pool.submit(0, lambda: "never", child_init=lambda: sys.exit(222))
        _drain(pool)

    assert rec.outcomes[0].exitcode == 222
    assert not rec.outcomes[0].has_result


def test_submit_waits_for_a_free_slot(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(1, rec, tempdir=tmp_path, wait_interval=0.1) as pool:
        pool.submit(0, lambda: time.sleep(0.3))
        assert pool.live_count == 1
        pool.submit(1, lambda: "second")
        assert pool.live_count == 1
        assert rec.calls == [0]
        _drain(pool)

    assert rec.calls == [0, 1]


def test_on_wait_can_abort_a_submission(tmp_path: Path) -> None:
    rec = Recorder()
    calls: list[int] = []

    def on_wait() -> bool:
        calls.append(1)
        return True

    with WorkerPool(1, rec, tempdir=tmp_path, wait_interval=0.1) as pool:
        pool.submit(0, lambda: time.sleep(30))
        assert pool.submit(1, lambda: "never", on_wait=on_wait) is False
        assert pool.live_count == 1
        assert calls == [1]

    assert rec.calls == [0]
    assert rec.outcomes[0].killed


def test_terminate_all_is_idempotent_and_kills_workers(tmp_path: Path) -> None:
    rec = Recorder()
    with WorkerPool(3, rec, tempdir=tmp_path) as pool:
        for i in range(3):
            pool.submit(i, lambda: time.sleep(30))
        pool.terminate_all()
        pool.terminate_all()
        _drain(pool)

    assert sorted(rec.calls) == [0, 1, 2]
    for outcome in rec.outcomes.values():
        assert outcome.terminated
        assert outcome.killed
        assert not outcome.has_result


def test_close_reaps_every_worker_and_removes_scratch(tmp_path: Path) -> None:
    rec = Recorder()
    pool = WorkerPool(2, rec, tempdir=tmp_path)
    pool.submit(0, lambda: time.sleep(30))
    pool.close(grace=5.0)
    pool.close()

    assert rec.calls == [0]
    assert rec.outcomes[0].killed
    assert list(tmp_path.iterdir()) == []


def test_submit_on_closed_pool_raises(tmp_path: Path) -> None:
    pool = WorkerPool(2, Recorder(), tempdir=tmp_path)
    pool.close()
    with pytest.raises(RuntimeError):
        pool.submit(0, lambda: None)


def test_pool_needs_at_least_one_slot() -> None:
    with pytest.raises(ValueError):
        WorkerPool(0, Recorder())
