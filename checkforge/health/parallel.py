from __future__ import annotations

import logging
from functools import partial
from typing import Any, Callable, Iterable, Mapping

from checkforge.config import RunOptions
from checkforge.executor.pool import WorkerOutcome, WorkerPool
from checkforge.executor.state import (
    CheckResult,
    Deadline,
    GlobalTimeout,
    RunState,
)

from .base import Check, HealthCheck, run_check

logger = logging.getLogger(__name__)


class ParallelHealthCheck(HealthCheck):
    """A health check that runs its checks in forked worker processes.

    Up to `max_procs` checks run at once; 0 or 1 runs them one after another
    in the calling process. `timeout` bounds the whole batch: once it passes,
    every live worker is terminated and the checks that did not finish are
    reported as CRITICAL. `child_init` runs at the start of each worker, and
    `tempdir` is where workers leave their results for the parent to pick up.

    Every option can be overridden for a single call::

        hc = ParallelHealthCheck(checks, max_procs=4, timeout=120)
        hc.check()
        hc.check(max_procs=1)
        hc.check(timeout=30)
    """

    def __init__(
        self,
        checks: Iterable[Check] = (),
        *,
        max_procs: int | None = None,
        child_init: Callable[[], Any] | None = None,
        tempdir: str | None = None,
        timeout: int | None = None,
        id: str | None = None,
        label: str | None = None,
    ):
        super().__init__(checks, id=id, label=label)
        self.options = RunOptions.build(
            max_procs=max_procs,
            child_init=child_init,
            tempdir=tempdir,
            timeout=timeout,
        )

    def _run_checks(
        self, checks: list[Check], params: Mapping[str, Any]
    ) -> list[CheckResult]:
        options = self.options.merged(params)

        if not options.parallel:
            logger.debug("Running %d checks in-process", len(checks))
            return [run_check(check) for check in checks]

        return self._run_parallel(checks, options)

    def _run_parallel(
        self, checks: list[Check], options: RunOptions
    ) -> list[CheckResult]:
        run = RunState(len(checks), Deadline(options.timeout))
        logger.debug(
            "Dispatching %d checks over %d workers, timeout %ds",
            len(checks),
            options.max_procs,
            options.timeout,
        )

        with WorkerPool(
            options.max_procs,
            partial(_record_outcome, run),
            tempdir=options.tempdir,
        ) as pool:
            on_wait = partial(_check_deadline, run, pool)

            for index, check in enumerate(checks):
                if run.timed_out or on_wait():
                    break

                run.dispatch(index)
                started = pool.submit(
                    index,
                    partial(run_check, check),
                    child_init=options.child_init,
                    on_wait=on_wait,
                )
                if not started:
                    break
                run.start(index)

            if not run.timed_out:
                while pool.has_live_workers():
                    pool.wait(pool.poll_interval)
                    pool.reap_finished()
                    if on_wait():
                        break

            pool.reap_finished()

        results = run.finalize()
        if run.timed_out:
            raise GlobalTimeout(options.timeout, results)
        return results


def _check_deadline(run: RunState, pool: WorkerPool) -> bool:
    if run.timed_out:
        return True
    if not run.deadline.expired():
        return False

    if run.mark_timed_out():
        logger.warning(
            "Global timeout of %d seconds exceeded, terminating %d workers",
            run.timeout,
            pool.live_count,
        )
        pool.terminate_all()
    return True


def _record_outcome(run: RunState, index: int, outcome: WorkerOutcome) -> None:
    if outcome.has_result:
        run.complete(index, outcome.result)
    elif outcome.killed:
        run.kill(index)
    else:
        logger.warning("Check %d: worker exited with code %s", index, outcome.exitcode)
        run.crash(index, outcome.exitcode)
