from __future__ import annotations

import time
from enum import Enum, auto
from typing import Any, Callable

from checkforge.status import CRITICAL

CheckResult = dict[str, Any]


class TaskState(Enum):
    PENDING = auto()
    DISPATCHED = auto()
    RUNNING = auto()
    COMPLETED = auto()
    CRASHED = auto()
    KILLED = auto()
    NOT_STARTED = auto()

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {TaskState.COMPLETED, TaskState.CRASHED, TaskState.KILLED, TaskState.NOT_STARTED}
)

_ALLOWED: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.DISPATCHED, TaskState.NOT_STARTED}),
    TaskState.DISPATCHED: frozenset({TaskState.RUNNING, TaskState.KILLED}),
    TaskState.RUNNING: frozenset(
        {TaskState.COMPLETED, TaskState.CRASHED, TaskState.KILLED}
    ),
}


def crashed_result(exitcode: int | None) -> CheckResult:
    return {
        "status": CRITICAL,
        "info": f"Child process exited with code {exitcode}.",
    }


def killed_result(timeout: int) -> CheckResult:
    return {
        "status": CRITICAL,
        "info": f"Check killed due to global timeout of {timeout} seconds.",
    }


def not_started_result(timeout: int) -> CheckResult:
    return {
        "status": CRITICAL,
        "info": f"Check not started due to global timeout of {timeout} seconds.",
    }


class GlobalTimeout(Exception):
    """The batch ran past its deadline.

    `results` holds one record per check in input order: genuine results for
    checks that finished in time, synthesized CRITICAL records for the rest.
    """

    def __init__(self, timeout: int, results: list[CheckResult]):
        super().__init__(f"Global timeout of {timeout} seconds exceeded.")
        self.timeout = timeout
        self.results = results


class Deadline:
    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self.started = clock()

    @property
    def expires_at(self) -> float:
        return self.started + self.timeout

    def elapsed(self) -> float:
        return self._clock() - self.started

    def expired(self) -> bool:
        return self.elapsed() > self.timeout


class RunState:
    """Everything one parallel run mutates.

    Owned by the coordinating process only. Workers never touch it; their
    outcomes are written through `complete`/`crash`/`kill` from the pool's
    finish callback.
    """

    def __init__(self, count: int, deadline: Deadline):
        self.deadline = deadline
        self.states: list[TaskState] = [TaskState.PENDING] * count
        self._slots: list[CheckResult | None] = [None] * count
        self._filled: list[bool] = [False] * count
        self._timed_out = False

    @property
    def timeout(self) -> int:
        return self.deadline.timeout

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    def mark_timed_out(self) -> bool:
        if self._timed_out:
            return False
        self._timed_out = True
        return True

    def _move(self, index: int, new: TaskState) -> None:
        current = self.states[index]
        if new not in _ALLOWED.get(current, ()):
            raise RuntimeError(
                f"check {index}: illegal transition {current.name} -> {new.name}"
            )
        self.states[index] = new

    def _fill(self, index: int, result: CheckResult) -> None:
        if self._filled[index]:
            raise RuntimeError(f"check {index}: result slot already filled")
        self._slots[index] = result
        self._filled[index] = True

    def dispatch(self, index: int) -> None:
        self._move(index, TaskState.DISPATCHED)

    def start(self, index: int) -> None:
        self._move(index, TaskState.RUNNING)

    def complete(self, index: int, result: CheckResult) -> None:
        self._move(index, TaskState.COMPLETED)
        self._fill(index, result)

    def crash(self, index: int, exitcode: int | None) -> None:
        self._move(index, TaskState.CRASHED)
        self._fill(index, crashed_result(exitcode))

    def kill(self, index: int) -> None:
        self._move(index, TaskState.KILLED)

    def finalize(self) -> list[CheckResult]:
        """Close every open task and return the ordered results."""
        for index, state in enumerate(self.states):
            if state.terminal:
                continue
            if not self._timed_out:
                raise RuntimeError(f"check {index} still {state.name} after the run")
            if state is TaskState.PENDING:
                self._move(index, TaskState.NOT_STARTED)
            else:
                self._move(index, TaskState.KILLED)

        results: list[CheckResult] = []
        for index, state in enumerate(self.states):
            slot = self._slots[index]
            if slot is not None:
                results.append(slot)
            elif state is TaskState.NOT_STARTED:
                results.append(not_started_result(self.timeout))
            else:
                results.append(killed_result(self.timeout))
        return results
