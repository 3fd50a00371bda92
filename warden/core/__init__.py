"""
Warden - Core Package
=====================

Logger, configuration, clock, error types, platform capability
interfaces, guild settings and the config store.

DESIGN:
    Core modules expose shared instances:
    - get_config() returns the same Config instance
    - get_db() returns the same DatabaseManager instance
    - logger is a global TreeLogger instance
"""

from .config import Config, ConfigValidationError, get_config
from .logger import logger, TreeLogger, NY_TZ

__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "logger",
    "TreeLogger",
    "NY_TZ",
]
