from typing import Any, Iterable, Mapping

OK = "OK"
WARNING = "WARNING"
UNKNOWN = "UNKNOWN"
CRITICAL = "CRITICAL"

# Least to most severe.
STATUSES = (OK, WARNING, UNKNOWN, CRITICAL)
_SEVERITY = {status: rank for rank, status in enumerate(STATUSES)}


def summarize_status(results: Iterable[Mapping[str, Any]]) -> str:
    worst = None
    for result in results:
        status = result.get("status")
        if status not in _SEVERITY:
            status = UNKNOWN
        if worst is None or _SEVERITY[status] > _SEVERITY[worst]:
            worst = status
    return worst if worst is not None else UNKNOWN
