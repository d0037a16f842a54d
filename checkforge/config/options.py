from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

from .types import ConfigError

DEFAULT_MAX_PROCS = 4
DEFAULT_TIMEOUT = 120

OPTION_NAMES = ("max_procs", "child_init", "tempdir", "timeout")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_max_procs(value: Any) -> None:
    if not _is_int(value) or value < 0:
        raise ConfigError("max_procs must be a zero or positive integer!")


def validate_child_init(value: Any) -> None:
    if value is not None and not callable(value):
        raise ConfigError("child_init must be a code reference!")


def validate_timeout(value: Any) -> None:
    if not _is_int(value) or value <= 0:
        raise ConfigError("timeout must be a positive integer!")


def validate_tempdir(value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, (str, os.PathLike)):
        raise ConfigError("tempdir must be a path!")
    if not os.path.isdir(value):
        raise ConfigError(f"tempdir is not a directory: {os.fspath(value)}")


_VALIDATORS: dict[str, Callable[[Any], None]] = {
    "max_procs": validate_max_procs,
    "child_init": validate_child_init,
    "tempdir": validate_tempdir,
    "timeout": validate_timeout,
}


@dataclass(frozen=True)
class RunOptions:
    """Options controlling how a batch of checks is dispatched.

    `max_procs` of 0 or 1 runs every check in the calling process; anything
    larger forks one worker per check with at most `max_procs` alive at once.
    `timeout` is a single budget in seconds covering the whole batch.
    """

    max_procs: int = DEFAULT_MAX_PROCS
    child_init: Callable[[], Any] | None = None
    tempdir: str | os.PathLike[str] | None = None
    timeout: int = DEFAULT_TIMEOUT

    @classmethod
    def build(cls, **values: Any) -> RunOptions:
        given = {k: v for k, v in values.items() if v is not None}
        _check_names(given)
        options = cls(**given)
        for name in OPTION_NAMES:
            _VALIDATORS[name](getattr(options, name))
        return options

    def merged(self, overrides: Mapping[str, Any]) -> RunOptions:
        # None means "not given" and falls back to the instance default.
        given = {k: v for k, v in overrides.items() if v is not None}
        _check_names(given)
        for name, value in given.items():
            _VALIDATORS[name](value)
        return replace(self, **given)

    @property
    def parallel(self) -> bool:
        return self.max_procs > 1


def _check_names(values: Mapping[str, Any]) -> None:
    for name in values:
        if name not in _VALIDATORS:
            raise ConfigError(f"Unknown option: {name}")
