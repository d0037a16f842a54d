from checkforge.status import CRITICAL, OK, UNKNOWN, WARNING, summarize_status

from .base import HealthCheck, run_check
from .parallel import ParallelHealthCheck

__all__ = [
    "HealthCheck",
    "ParallelHealthCheck",
    "run_check",
    "summarize_status",
    "OK",
    "WARNING",
    "UNKNOWN",
    "CRITICAL",
]
