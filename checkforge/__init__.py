from .config import ConfigError
from .executor import GlobalTimeout
from .health import HealthCheck, ParallelHealthCheck

__all__ = ["ConfigError", "GlobalTimeout", "HealthCheck", "ParallelHealthCheck"]
