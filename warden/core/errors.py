"""
Warden - Error Types
====================

Exception taxonomy shared by the core and the platform adapter.

DESIGN:
    None of these are meant to escape an event handler. Services catch
    them at the call site and degrade: a config failure falls back to
    defaults and allows, a platform failure is logged and the pipeline
    continues where that is safe, a missing setting ends verification
    with an ERROR outcome.
"""

from typing import Optional


class WardenError(Exception):
    """Base class for all Warden errors."""

    pass


class ConfigUnavailable(WardenError):
    """The guild config store could not be read or written."""

    def __init__(self, guild_id: int, message: str = "config store unavailable") -> None:
        super().__init__(f"{message} (guild {guild_id})")
        self.guild_id = guild_id


class PlatformCallFailure(WardenError):
    """A role, webhook, member or message call to the platform failed."""

    def __init__(
        self,
        operation: str,
        message: str = "",
        status: Optional[int] = None,
    ) -> None:
        super().__init__(f"{operation} failed: {message}" if message else f"{operation} failed")
        self.operation = operation
        self.status = status


class NotConfigured(WardenError):
    """A setting required for an operation is missing or points nowhere."""

    def __init__(self, setting: str) -> None:
        super().__init__(f"missing setting: {setting}")
        self.setting = setting


__all__ = [
    "WardenError",
    "ConfigUnavailable",
    "PlatformCallFailure",
    "NotConfigured",
]
