from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Union

from checkforge.config.types import ConfigError
from checkforge.executor.state import CheckResult, GlobalTimeout, killed_result
from checkforge.status import CRITICAL, summarize_status

logger = logging.getLogger(__name__)

Check = Union[Callable[[], Any], Any]


class HealthCheck:
    """Runs a list of checks and presents their results.

    A check is a zero-argument callable, or any object with a zero-argument
    `check()` method, returning a mapping with at least a `status` key.
    """

    def __init__(
        self,
        checks: Iterable[Check] = (),
        *,
        id: str | None = None,
        label: str | None = None,
    ):
        self.checks: list[Check] = list(checks)
        self.id = id
        self.label = label

    def register(self, check: Check) -> None:
        self.checks.append(check)

    def check(self, **params: Any) -> CheckResult:
        try:
            results = self._run_checks(self.checks, params)
        except ConfigError as exc:
            logger.error("Invalid options for this run: %s", exc)
            return {"status": CRITICAL, "info": str(exc)}
        except GlobalTimeout as exc:
            if len(exc.results) == 1:
                return exc.results[0]
            return self._envelope(
                exc.results, status=CRITICAL, info=killed_result(exc.timeout)["info"]
            )

        if len(results) == 1:
            return results[0]
        return self._envelope(results, status=summarize_status(results))

    def _run_checks(
        self, checks: list[Check], params: Mapping[str, Any]
    ) -> list[CheckResult]:
        return [run_check(check) for check in checks]

    def _envelope(
        self, results: list[CheckResult], *, status: str, info: str | None = None
    ) -> CheckResult:
        envelope: CheckResult = {}
        if self.id is not None:
            envelope["id"] = self.id
        if self.label is not None:
            envelope["label"] = self.label
        envelope["status"] = status
        if info is not None:
            envelope["info"] = info
        envelope["results"] = results
        return envelope


def run_check(check: Check) -> CheckResult:
    func = check.check if hasattr(check, "check") else check
    try:
        result = func()
    except Exception as exc:
        logger.exception("Check %r raised", check)
        return {"status": CRITICAL, "info": str(exc)}

    if not isinstance(result, Mapping):
        return {
            "status": CRITICAL,
            "info": f"Check returned {type(result).__name__}, expected a mapping.",
        }
    return dict(result)
