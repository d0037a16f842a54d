from .command import CommandCheck, command_checks
from .pool import WorkerOutcome, WorkerPool
from .state import (
    CheckResult,
    Deadline,
    GlobalTimeout,
    RunState,
    TaskState,
    crashed_result,
    killed_result,
    not_started_result,
)

__all__ = [
    "CommandCheck",
    "command_checks",
    "WorkerPool",
    "WorkerOutcome",
    "CheckResult",
    "Deadline",
    "GlobalTimeout",
    "RunState",
    "TaskState",
    "crashed_result",
    "killed_result",
    "not_started_result",
]
