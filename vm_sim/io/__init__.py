"""I/O exports."""

from .loader import ConfigError, ConfigLoader
from .schema import CONFIG_SCHEMA

__all__ = ["CONFIG_SCHEMA", "ConfigError", "ConfigLoader"]
