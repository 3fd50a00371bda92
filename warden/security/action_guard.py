"""
Warden - Action Guard
=====================

Allow or deny privileged actions according to the guild's panic level.

DESIGN:
    assert_allowed() never raises. If anything goes wrong while reading
    panic state the action is allowed: a guard that blocks forever on an
    internal fault is worse than one that occasionally misses a block.

    Policy by level:
        NONE    nothing blocked
        LIGHT   action kinds containing MASS or BULK
        MEDIUM  ROLE_MODIFY, CHANNEL_DELETE, WEBHOOK_CREATE, PERMISSION_UPDATE
        FULL    everything
"""

from typing import FrozenSet, Optional

from warden.core.logger import logger
from warden.security.panic import PanicLevel, PanicStateMachine


# =============================================================================
# Action Kinds
# =============================================================================

class ActionKind:
    """Named privileged actions. Any string is a valid action kind."""

    ROLE_MODIFY = "ROLE_MODIFY"
    CHANNEL_DELETE = "CHANNEL_DELETE"
    WEBHOOK_CREATE = "WEBHOOK_CREATE"
    PERMISSION_UPDATE = "PERMISSION_UPDATE"
    GATEWAY_ROLE_ASSIGN = "GATEWAY_ROLE_ASSIGN"
    MASS_ROLE_ASSIGN = "MASS_ROLE_ASSIGN"
    BULK_MESSAGE_DELETE = "BULK_MESSAGE_DELETE"


MEDIUM_BLOCKED: FrozenSet[str] = frozenset({
    ActionKind.ROLE_MODIFY,
    ActionKind.CHANNEL_DELETE,
    ActionKind.WEBHOOK_CREATE,
    ActionKind.PERMISSION_UPDATE,
})

LIGHT_MARKERS = ("MASS", "BULK")


def is_blocked(level: Optional[PanicLevel], action_kind: str) -> bool:
    """Pure policy lookup for one level and action kind."""
    if level is None or level == PanicLevel.NONE:
        return False
    if level == PanicLevel.FULL:
        return True
    if level == PanicLevel.MEDIUM:
        return action_kind in MEDIUM_BLOCKED
    if level == PanicLevel.LIGHT:
        kind = action_kind.upper()
        return any(marker in kind for marker in LIGHT_MARKERS)
    return False


# =============================================================================
# Guard
# =============================================================================

class ActionGuard:
    """Consulted before every privileged mutation."""

    def __init__(self, panic: PanicStateMachine) -> None:
        self.panic = panic

    def assert_allowed(self, guild_id: int, action_kind: str) -> bool:
        """
        Return True if action_kind may run in guild_id right now.

        Blocks are logged as security events. Internal errors allow.
        """
        try:
            level = self.panic.get_level(guild_id)
            if not is_blocked(level, str(action_kind)):
                return True

            logger.security("Action Blocked", [
                ("Guild ID", str(guild_id)),
                ("Action", str(action_kind)),
                ("Panic Level", level.value),
            ], emoji="⛔")
            return False

        except Exception as e:
            logger.error("Action Guard Failed", [
                ("Guild ID", str(guild_id)),
                ("Action", str(action_kind)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
                ("Decision", "Allowed"),
            ])
            return True

    def allowed_all(self, guild_id: int, *action_kinds: str) -> bool:
        """True only if every kind is allowed. Each block is logged."""
        results = [self.assert_allowed(guild_id, kind) for kind in action_kinds]
        return all(results)


__all__ = [
    "ActionKind",
    "ActionGuard",
    "MEDIUM_BLOCKED",
    "is_blocked",
]
