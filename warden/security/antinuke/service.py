"""
Warden - Anti-Nuke Spike Detector
=================================

Detects bursts of destructive events and escalates panic.

DESIGN:
    One sliding window per (guild, event type). When a record brings the
    count to the threshold the guild is escalated to MEDIUM panic. The
    breach is latched until the window drains below the threshold again,
    so one burst is reported once. Later events that keep the window at
    or over the threshold re-escalate quietly once less than half of the
    panic duration is left, so panic outlasts the attack.

    Limits come from the registered rule unless the guild config
    (security.antinuke) overrides a built-in event type. The rules alone
    apply when the store is unreachable.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

from warden.core.clock import Clock
from warden.core.config_store import ConfigStore
from warden.core.errors import ConfigUnavailable
from warden.core.guild_settings import AntiNukeSettings
from warden.core.logger import logger
from warden.security.panic import PanicLevel, PanicStateMachine
from warden.security.sliding_window import SlidingWindowCounter

from .constants import (
    CHANNEL_DELETE,
    ROLE_DELETE,
    ROLE_PERMISSION_UPDATE,
    DEFAULT_RULES,
)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class SpikeRule:
    """Threshold for one destructive event type."""

    event_type: str
    threshold: int
    window_seconds: int


# =============================================================================
# Spike Detector
# =============================================================================

class SpikeDetector:
    """
    Watches destructive events per guild.

    Built-in event types are channel_delete, role_delete and
    role_permission_update. Others can be added with register_rule().
    """

    def __init__(
        self,
        panic: PanicStateMachine,
        store: ConfigStore,
        clock: Clock,
    ) -> None:
        self.panic = panic
        self.store = store
        self.clock = clock

        self._rules: Dict[str, SpikeRule] = {
            event_type: SpikeRule(event_type, threshold, window)
            for event_type, (threshold, window) in DEFAULT_RULES.items()
        }
        # window length -> counter keyed by (guild_id, event_type)
        self._counters: Dict[int, SlidingWindowCounter] = {}
        self._breached: Set[Tuple[int, str]] = set()

        logger.tree("Anti-Nuke Spike Detector Loaded", [
            (rule.event_type, f"{rule.threshold} / {rule.window_seconds}s")
            for rule in self._rules.values()
        ], emoji="🛡️")

    def register_rule(self, rule: SpikeRule) -> None:
        """Watch a new event type, or replace the default for an existing one."""
        self._rules[rule.event_type] = rule

    def _counter(self, window_seconds: int) -> SlidingWindowCounter:
        counter = self._counters.get(window_seconds)
        if counter is None:
            counter = SlidingWindowCounter(window_seconds, self.clock)
            self._counters[window_seconds] = counter
        return counter

    async def _load_settings(self, guild_id: int) -> AntiNukeSettings:
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Anti-Nuke Using Defaults", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return AntiNukeSettings()
        return AntiNukeSettings.from_document(doc)

    def _limits(self, settings: AntiNukeSettings, rule: SpikeRule) -> Tuple[int, int]:
        """Guild overrides win over the rule, and only for built-in event types."""
        if rule.event_type not in DEFAULT_RULES:
            return rule.threshold, rule.window_seconds
        threshold = settings.threshold_for(rule.event_type) or rule.threshold
        window = settings.window_seconds or rule.window_seconds
        return threshold, window

    # =========================================================================
    # Recording
    # =========================================================================

    async def record_event(self, guild_id: int, event_type: str) -> bool:
        """
        Count one destructive event.

        Returns:
            True if this event triggered a panic escalation.
        """
        try:
            rule = self._rules.get(event_type)
            if rule is None:
                logger.debug(f"Spike event ignored, no rule for {event_type}")
                return False

            settings = await self._load_settings(guild_id)
            if not settings.enabled:
                return False

            threshold, window = self._limits(settings, rule)
            counter = self._counter(window)
            key = (guild_id, event_type)

            if counter.count(key) < threshold:
                self._breached.discard(key)

            count = counter.record(key)

            logger.debug("Destructive Event Tracked", [
                ("Guild ID", str(guild_id)),
                ("Event", event_type),
                ("Count", f"{count} / {threshold}"),
            ])

            if count < threshold:
                return False

            if key in self._breached:
                await self._refresh_panic(guild_id, event_type, count, window, settings)
                return False

            self._breached.add(key)
            await self._handle_spike(guild_id, event_type, count, window, settings)
            return True

        except Exception as e:
            logger.error("Spike Tracking Failed", [
                ("Guild ID", str(guild_id)),
                ("Event", event_type),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return False

    async def on_channel_delete(self, guild_id: int) -> bool:
        return await self.record_event(guild_id, CHANNEL_DELETE)

    async def on_role_delete(self, guild_id: int) -> bool:
        return await self.record_event(guild_id, ROLE_DELETE)

    async def on_role_update(
        self,
        guild_id: int,
        before_permissions: int,
        after_permissions: int,
    ) -> bool:
        """Count a role update only if its permission bitfield changed."""
        if before_permissions == after_permissions:
            return False
        return await self.record_event(guild_id, ROLE_PERMISSION_UPDATE)

    async def _handle_spike(
        self,
        guild_id: int,
        event_type: str,
        count: int,
        window: int,
        settings: AntiNukeSettings,
    ) -> None:
        logger.security("Spike Detected", [
            ("Guild ID", str(guild_id)),
            ("Event", event_type),
            ("Count", f"{count} in {window}s"),
            ("Response", f"Panic {PanicLevel.MEDIUM.value} for {settings.panic_minutes} min"),
        ], emoji="💥")

        await self.store.record_event(guild_id, "spike_detected", {
            "event_type": event_type,
            "count": count,
            "window_seconds": window,
        })
        await self.panic.escalate(
            guild_id,
            PanicLevel.MEDIUM,
            settings.panic_minutes,
            reason=f"{event_type} spike ({count} in {window}s)",
        )

    async def _refresh_panic(
        self,
        guild_id: int,
        event_type: str,
        count: int,
        window: int,
        settings: AntiNukeSettings,
    ) -> None:
        """Keep panic alive while a latched burst is still at or over its threshold."""
        state = self.panic.get_state(guild_id)
        half = settings.panic_minutes * 60 / 2
        if state is not None and state.remaining(self.clock.now()) > half:
            return

        logger.debug("Spike Still Active", [
            ("Guild ID", str(guild_id)),
            ("Event", event_type),
            ("Count", f"{count} in {window}s"),
        ])
        await self.panic.escalate(
            guild_id,
            PanicLevel.MEDIUM,
            settings.panic_minutes,
            reason=f"{event_type} spike ({count} in {window}s)",
        )

    # =========================================================================
    # Housekeeping
    # =========================================================================

    def count(self, guild_id: int, event_type: str, window_seconds: Optional[int] = None) -> int:
        """In-window count for a guild and event type under its default rule."""
        rule = self._rules.get(event_type)
        if rule is None:
            return 0
        window = window_seconds or rule.window_seconds
        counter = self._counters.get(window)
        return counter.count((guild_id, event_type)) if counter else 0

    def evict_idle(self, idle_seconds: float) -> int:
        removed = 0
        for counter in self._counters.values():
            removed += counter.evict_idle(idle_seconds)
        self._breached = {
            key for key in self._breached
            if any(key in counter for counter in self._counters.values())
        }
        return removed


__all__ = ["SpikeDetector", "SpikeRule"]
