"""
Warden - Panic State Machine
============================

Per-guild panic level with auto-expiry and a persisted mirror.

DESIGN:
    The in-memory map is authoritative for every admission and action
    decision. Each transition is mirrored into the guild config under
    security.panic so that a restart can pick the state back up, but a
    failed mirror write is only logged: it never blocks the transition.

    Expiry is lazy. A state past expires_at is treated as absent by
    get_level() and evicted on that read, so no timer is needed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Union

from warden.core.clock import Clock
from warden.core.config_store import ConfigStore, get_path
from warden.core.constants import (
    DEFAULT_PANIC_DURATION_MINUTES,
    MIN_PANIC_DURATION_MINUTES,
    SECONDS_PER_MINUTE,
)
from warden.core.errors import ConfigUnavailable
from warden.core.logger import logger


PANIC_PATH = ("security", "panic")


# =============================================================================
# Levels
# =============================================================================

class PanicLevel(str, Enum):
    """Escalating lockdown levels. The only panic vocabulary in Warden."""

    NONE = "none"
    LIGHT = "light"
    MEDIUM = "medium"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: Union["PanicLevel", str]) -> "PanicLevel":
        """
        Accept a member or its lowercase name.

        Raises:
            ValueError: For anything else, including other naming schemes.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                pass
        raise ValueError(f"unknown panic level: {value!r}")


_RANKS = {
    PanicLevel.NONE: 0,
    PanicLevel.LIGHT: 1,
    PanicLevel.MEDIUM: 2,
    PanicLevel.FULL: 3,
}


# =============================================================================
# State
# =============================================================================

@dataclass
class PanicState:
    """Active panic for one guild. Times are epoch seconds."""

    guild_id: int
    level: PanicLevel
    activated_at: float
    expires_at: float
    reason: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.level != PanicLevel.NONE

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        return max(0.0, self.expires_at - now)


# =============================================================================
# State Machine
# =============================================================================

class PanicStateMachine:
    """
    Owns the panic state of every guild.

    Injected into ActionGuard, the detectors and the verification gateway
    so that all of them read one map.
    """

    def __init__(
        self,
        store: ConfigStore,
        clock: Clock,
        default_minutes: int = DEFAULT_PANIC_DURATION_MINUTES,
    ) -> None:
        self.store = store
        self.clock = clock
        self.default_minutes = default_minutes
        self._states: Dict[int, PanicState] = {}

    # =========================================================================
    # Transitions
    # =========================================================================

    async def enable_panic(
        self,
        guild_id: int,
        level: Union[PanicLevel, str],
        duration_minutes: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> Optional[PanicState]:
        """
        Set or overwrite the guild's panic level.

        duration_minutes defaults to default_minutes and is floored to one
        minute. Enabling NONE is the same as disable_panic().

        Returns:
            The new state, or None when the call disabled panic.
        """
        level = PanicLevel.parse(level)
        if level == PanicLevel.NONE:
            await self.disable_panic(guild_id, reason=reason)
            return None

        if duration_minutes is None:
            duration_minutes = self.default_minutes
        try:
            duration = float(duration_minutes)
        except (TypeError, ValueError):
            duration = float(self.default_minutes)
        duration = max(float(MIN_PANIC_DURATION_MINUTES), duration)

        now = self.clock.now()
        previous = self._live_state(guild_id, now)
        state = PanicState(
            guild_id=guild_id,
            level=level,
            activated_at=now,
            expires_at=now + duration * SECONDS_PER_MINUTE,
            reason=reason,
        )
        self._states[guild_id] = state

        logger.security("Panic Enabled", [
            ("Guild ID", str(guild_id)),
            ("Level", level.value),
            ("Previous", previous.level.value if previous else "none"),
            ("Duration", f"{duration:g} min"),
            ("Reason", reason or "Not specified"),
        ], emoji="🚨")

        await self._persist(guild_id, {
            "active": True,
            "level": level.value,
            "activated_at": state.activated_at,
            "until": state.expires_at,
            "reason": reason,
        })
        await self.store.record_event(guild_id, "panic_enabled", {
            "level": level.value,
            "until": state.expires_at,
            "reason": reason,
        })
        return state

    async def escalate(
        self,
        guild_id: int,
        level: Union[PanicLevel, str],
        duration_minutes: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Enable panic unless the guild is already at a higher level.

        Detectors call this so that a MEDIUM breach never downgrades an
        operator's FULL lockdown. Re-enabling at the same level refreshes
        the expiry.

        Returns:
            True if the state was (re)written.
        """
        level = PanicLevel.parse(level)
        current = self.get_level(guild_id)
        if current is not None and current.rank > level.rank:
            logger.debug("Panic Escalation Skipped", [
                ("Guild ID", str(guild_id)),
                ("Current", current.value),
                ("Requested", level.value),
            ])
            return False
        await self.enable_panic(guild_id, level, duration_minutes, reason=reason)
        return True

    async def disable_panic(self, guild_id: int, reason: Optional[str] = None) -> bool:
        """
        Clear the guild's panic state immediately.

        Returns:
            True if a live panic was cleared.
        """
        state = self._states.pop(guild_id, None)
        was_active = state is not None and not state.is_expired(self.clock.now())

        logger.security("Panic Disabled", [
            ("Guild ID", str(guild_id)),
            ("Was Active", "Yes" if was_active else "No"),
            ("Reason", reason or "Not specified"),
        ], emoji="🟢")

        await self._persist(guild_id, {"active": False})
        await self.store.record_event(guild_id, "panic_disabled", {"reason": reason})
        return was_active

    # =========================================================================
    # Queries
    # =========================================================================

    def _live_state(self, guild_id: int, now: float) -> Optional[PanicState]:
        state = self._states.get(guild_id)
        if state is None:
            return None
        if state.is_expired(now):
            del self._states[guild_id]
            logger.security("Panic Expired", [
                ("Guild ID", str(guild_id)),
                ("Level", state.level.value),
            ], emoji="⌛")
            return None
        return state

    def get_state(self, guild_id: int) -> Optional[PanicState]:
        return self._live_state(guild_id, self.clock.now())

    def get_level(self, guild_id: int) -> Optional[PanicLevel]:
        """Current level, or None if the guild has no live panic."""
        state = self._live_state(guild_id, self.clock.now())
        return state.level if state else None

    def active_guilds(self) -> List[int]:
        now = self.clock.now()
        return [gid for gid in list(self._states) if self._live_state(gid, now)]

    # =========================================================================
    # Persistence
    # =========================================================================

    async def _persist(self, guild_id: int, mirror: dict) -> None:
        try:
            result = await self.store.save_config(guild_id, {"security": {"panic": mirror}})
        except Exception as e:
            logger.warning("Panic Mirror Not Saved", [
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return
        if result is None:
            logger.warning("Panic Mirror Not Saved", [
                ("Guild ID", str(guild_id)),
                ("Reason", "Store returned no document"),
            ])

    async def restore(self, guild_id: int) -> Optional[PanicState]:
        """
        Re-hydrate in-memory state from the persisted mirror.

        Only an active mirror whose until is still in the future is
        restored. Anything unreadable is ignored.
        """
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Panic Restore Skipped", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return None

        mirror = get_path(doc, PANIC_PATH, {})
        if not isinstance(mirror, dict) or not mirror.get("active"):
            return None

        try:
            level = PanicLevel.parse(mirror.get("level"))
            until = float(mirror.get("until"))
            activated_at = float(mirror.get("activated_at") or self.clock.now())
        except (TypeError, ValueError):
            logger.warning("Panic Mirror Unreadable", [
                ("Guild ID", str(guild_id)),
                ("Level", str(mirror.get("level"))),
            ])
            return None

        now = self.clock.now()
        if level == PanicLevel.NONE or until <= now:
            return None

        state = PanicState(
            guild_id=guild_id,
            level=level,
            activated_at=activated_at,
            expires_at=until,
            reason=mirror.get("reason"),
        )
        self._states[guild_id] = state

        logger.tree("Panic Restored", [
            ("Guild ID", str(guild_id)),
            ("Level", level.value),
            ("Remaining", f"{int(state.remaining(now))}s"),
        ], emoji="♻️")
        return state


__all__ = [
    "PanicLevel",
    "PanicState",
    "PanicStateMachine",
    "PANIC_PATH",
]
