from __future__ import annotations

import contextlib
import logging
import multiprocessing
import os
import pickle
import shutil
import signal
import tempfile
from dataclasses import dataclass
from multiprocessing.connection import wait as wait_for_sentinels
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)

_CONTEXT = multiprocessing.get_context("fork")
_KILL_SIGNALS = (-signal.SIGTERM, -signal.SIGKILL)


@dataclass(frozen=True)
class WorkerOutcome:
    ident: int
    exitcode: int | None
    result: Any = None
    has_result: bool = False
    terminated: bool = False

    @property
    def killed(self) -> bool:
        return self.terminated and self.exitcode in _KILL_SIGNALS


@dataclass
class WorkerHandle:
    ident: int
    process: Any
    result_path: Path
    terminated: bool = False


def _worker_main(
    result_path: str,
    body: Callable[[], Any],
    child_init: Callable[[], Any] | None,
) -> None:
    # Own process group so a kill also reaches commands the check spawned.
    os.setpgid(0, 0)

    if child_init is not None:
        child_init()

    payload = body()

    partial = result_path + ".part"
    with open(partial, "wb") as fh:
        pickle.dump(payload, fh, protocol=pickle.HIGHEST_PROTOCOL)
    os.replace(partial, result_path)


def _signal_group(process: Any, signum: int) -> None:
    try:
        os.killpg(process.pid, signum)
    except ProcessLookupError:
        # Not a group leader yet, or already gone.
        with contextlib.suppress(ProcessLookupError):
            os.kill(process.pid, signum)


class WorkerPool:
    """At most `max_procs` forked workers, one check per worker.

    A worker reports back by pickling its return value into a file in a
    private scratch directory; the exit code tells a crash from a clean
    return. `on_finish(ident, outcome)` is called exactly once per worker,
    always from the process that owns the pool.
    """

    def __init__(
        self,
        max_procs: int,
        on_finish: Callable[[int, WorkerOutcome], None],
        *,
        tempdir: str | os.PathLike[str] | None = None,
        wait_interval: float = 1.0,
        poll_interval: float = 0.1,
    ):
        if max_procs < 1:
            raise ValueError("a worker pool needs at least one slot")
        self.max_procs = max_procs
        self.on_finish = on_finish
        self.wait_interval = wait_interval
        self.poll_interval = poll_interval
        self._scratch = Path(tempfile.mkdtemp(prefix="checkforge-", dir=tempdir))
        self._live: dict[int, WorkerHandle] = {}
        self._closed = False

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def live_count(self) -> int:
        return len(self._live)

    def has_live_workers(self) -> bool:
        return bool(self._live)

    def submit(
        self,
        ident: int,
        body: Callable[[], Any],
        *,
        child_init: Callable[[], Any] | None = None,
        on_wait: Callable[[], bool] | None = None,
    ) -> bool:
        """Start `body` in a new worker, waiting for a free slot first.

        Returns False without starting anything if `on_wait` asks to abort
        while waiting.
        """
        if self._closed:
            raise RuntimeError("pool is closed")
        if ident in self._live:
            raise ValueError(f"worker {ident} is already running")

        while len(self._live) >= self.max_procs:
            self.wait(self.wait_interval)
            self.reap_finished()
            if len(self._live) < self.max_procs:
                break
            if on_wait is not None and on_wait():
                logger.debug("Submission of worker %d aborted", ident)
                return False

        result_path = self._scratch / f"{ident}.pickle"
        process = _CONTEXT.Process(
            target=_worker_main,
            args=(str(result_path), body, child_init),
            name=f"checkforge-worker-{ident}",
        )
        process.start()
        self._live[ident] = WorkerHandle(ident, process, result_path)
        logger.debug("Started worker %d (pid %s)", ident, process.pid)
        return True

    def wait(self, timeout: float) -> None:
        """Block until a worker exits or `timeout` seconds pass."""
        if not self._live:
            return
        sentinels = [handle.process.sentinel for handle in self._live.values()]
        wait_for_sentinels(sentinels, timeout)

    def reap_finished(self) -> int:
        finished = [
            handle
            for handle in self._live.values()
            if handle.process.exitcode is not None
        ]
        for handle in finished:
            self._finish(handle)
        return len(finished)

    def terminate_all(self) -> None:
        for handle in self._live.values():
            if handle.terminated:
                continue
            handle.terminated = True
            if handle.process.exitcode is None:
                logger.debug("Terminating worker %d (pid %s)", handle.ident, handle.process.pid)
                _signal_group(handle.process, signal.SIGTERM)

    def close(self, grace: float = 2.0) -> None:
        if self._closed:
            return
        self._closed = True

        if self._live:
            self.terminate_all()
            for handle in list(self._live.values()):
                handle.process.join(grace)
                if handle.process.exitcode is None:
                    logger.warning(
                        "Worker %d ignored SIGTERM, killing it", handle.ident
                    )
                    _signal_group(handle.process, signal.SIGKILL)
                    handle.process.join()
                self._finish(handle)

        shutil.rmtree(self._scratch, ignore_errors=True)

    def _finish(self, handle: WorkerHandle) -> None:
        handle.process.join()
        del self._live[handle.ident]

        exitcode = handle.process.exitcode
        result = None
        has_result = False
        if exitcode == 0 and handle.result_path.exists():
            with handle.result_path.open("rb") as fh:
                result = pickle.load(fh)
            has_result = True
        handle.process.close()

        outcome = WorkerOutcome(
            ident=handle.ident,
            exitcode=exitcode,
            result=result,
            has_result=has_result,
            terminated=handle.terminated,
        )
        logger.debug("Worker %d finished with exit code %s", handle.ident, exitcode)
        self.on_finish(handle.ident, outcome)
