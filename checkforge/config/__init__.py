from .loader import load_suite
from .options import (
    DEFAULT_MAX_PROCS,
    DEFAULT_TIMEOUT,
    RunOptions,
    validate_child_init,
    validate_max_procs,
    validate_timeout,
)
from .types import CheckConfig, ConfigError, SuiteConfig, UnsupportedConfigFormatError

__all__ = [
    "load_suite",
    "SuiteConfig",
    "CheckConfig",
    "ConfigError",
    "UnsupportedConfigFormatError",
    "RunOptions",
    "DEFAULT_MAX_PROCS",
    "DEFAULT_TIMEOUT",
    "validate_max_procs",
    "validate_child_init",
    "validate_timeout",
]
