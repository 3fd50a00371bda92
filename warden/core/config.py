"""
Warden - Configuration Module
=============================

Process-level configuration loaded from environment variables.

DESIGN:
    A single Config dataclass built once at startup via get_config().
    Per-guild security thresholds are NOT here: they live in the guild
    config store and are parsed by warden.core.guild_settings.

    Key patterns:
    - Singleton pattern via get_config() ensures one Config instance
    - Validation happens once at load time, not on every access
"""

import os
from dataclasses import dataclass
from typing import Optional, Set

from warden.core.constants import (
    DEFAULT_PANIC_DURATION_MINUTES,
    STATE_EVICT_AFTER_SECONDS,
)


# =============================================================================
# Configuration Dataclass
# =============================================================================

@dataclass
class Config:
    """
    Bot configuration loaded from environment variables.

    Attributes:
        discord_token: Discord bot authentication token.
        database_path: SQLite file backing the guild config store.
        error_webhook_url: Webhook that receives error alerts.
        ignored_guild_ids: Guilds whose events are never processed.
        default_panic_minutes: Panic duration used by detectors.
        state_evict_seconds: Idle time after which window keys are dropped.
    """

    discord_token: str
    database_path: str = "data/warden.db"
    error_webhook_url: Optional[str] = None
    ignored_guild_ids: Set[int] = None
    default_panic_minutes: int = DEFAULT_PANIC_DURATION_MINUTES
    state_evict_seconds: int = STATE_EVICT_AFTER_SECONDS

    def __post_init__(self) -> None:
        if self.ignored_guild_ids is None:
            self.ignored_guild_ids = set()


# =============================================================================
# Validation
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


def _parse_int_set(value: Optional[str]) -> Set[int]:
    """
    Parse comma-separated string to set of integers.

    Invalid entries are skipped.
    """
    if not value:
        return set()
    result = set()
    for part in value.split(","):
        part = part.strip()
        if part:
            try:
                result.add(int(part))
            except ValueError:
                pass
    return result


def _parse_int_with_default(
    value: Optional[str],
    default: int,
    name: str,
    min_val: int = None,
    max_val: int = None,
) -> int:
    """
    Parse optional integer with default and range validation.

    Args:
        value: String value from environment variable.
        default: Default value if not set or invalid.
        name: Variable name for warning messages.
        min_val: Minimum allowed value (inclusive).
        max_val: Maximum allowed value (inclusive).

    Returns:
        Parsed integer within valid range, or default.
    """
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        from warden.core.logger import logger
        logger.warning(f"Config {name}='{value}' invalid, using default {default}")
        return default
    if min_val is not None and parsed < min_val:
        from warden.core.logger import logger
        logger.warning(f"Config {name}={parsed} below min {min_val}, using {min_val}")
        return min_val
    if max_val is not None and parsed > max_val:
        from warden.core.logger import logger
        logger.warning(f"Config {name}={parsed} above max {max_val}, using {max_val}")
        return max_val
    return parsed


def _validate_url(value: Optional[str], name: str) -> Optional[str]:
    """Return the URL if it looks like http(s), otherwise None."""
    if not value:
        return None
    if not value.startswith(("https://", "http://")):
        from warden.core.logger import logger
        logger.warning(f"Config {name} invalid URL format, ignoring")
        return None
    return value


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config() -> Config:
    """
    Load and validate configuration from environment variables.

    Raises:
        ConfigValidationError: If DISCORD_TOKEN is missing.
    """
    discord_token = os.getenv("DISCORD_TOKEN")
    if not discord_token:
        raise ConfigValidationError("Missing required environment variables: DISCORD_TOKEN")

    return Config(
        discord_token=discord_token,
        database_path=os.getenv("DATABASE_PATH", "data/warden.db"),
        error_webhook_url=_validate_url(os.getenv("ERROR_WEBHOOK_URL"), "ERROR_WEBHOOK_URL"),
        ignored_guild_ids=_parse_int_set(os.getenv("IGNORED_GUILD_IDS")),
        default_panic_minutes=_parse_int_with_default(
            os.getenv("DEFAULT_PANIC_MINUTES"),
            DEFAULT_PANIC_DURATION_MINUTES,
            "DEFAULT_PANIC_MINUTES",
            min_val=1,
            max_val=24 * 60,
        ),
        state_evict_seconds=_parse_int_with_default(
            os.getenv("STATE_EVICT_SECONDS"),
            STATE_EVICT_AFTER_SECONDS,
            "STATE_EVICT_SECONDS",
            min_val=60,
        ),
    )


# =============================================================================
# Global Config Instance
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading if needed.

    Raises:
        ConfigValidationError: On first call if config is invalid.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def validate_and_log_config() -> None:
    """Load the config (raising if invalid) and log a summary."""
    from warden.core.logger import logger

    config = get_config()

    logger.tree("Configuration Validated", [
        ("Database", config.database_path),
        ("Error Webhook", "Enabled" if config.error_webhook_url else "Disabled"),
        ("Ignored Guilds", str(len(config.ignored_guild_ids))),
        ("Panic Duration", f"{config.default_panic_minutes} min"),
    ], emoji="⚙️")


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "Config",
    "ConfigValidationError",
    "get_config",
    "load_config",
    "validate_and_log_config",
]
