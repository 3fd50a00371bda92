"""
Warden - Webhook Guard
======================

Detects webhook creation bursts, deletes the new webhooks and escalates
panic.

DESIGN:
    The platform reports webhook create, update and delete as one coarse
    "webhooks changed" notification. On each one the guard fetches the
    guild's current webhooks and diffs them against the ids it already
    knows, so only genuinely new ids are counted.

    Each new id adds one entry to a 60 second window. Once the window
    holds more than the threshold, every webhook first observed inside
    the window is deleted (each failure logged on its own) and the guild
    is escalated to MEDIUM panic. Webhooks present when the baseline was
    taken are never deleted.

    The whole pass is gated on WEBHOOK_CREATE so a guild already in
    lockdown is not remediated twice.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from warden.core.clock import Clock
from warden.core.config_store import ConfigStore
from warden.core.errors import ConfigUnavailable, PlatformCallFailure
from warden.core.guild_settings import WebhookSettings
from warden.core.logger import logger
from warden.core.platform import WebhookOwner
from warden.security.action_guard import ActionGuard, ActionKind
from warden.security.panic import PanicLevel, PanicStateMachine
from warden.security.sliding_window import SlidingWindowCounter


@dataclass
class WebhookSweep:
    """What one reconciliation pass saw and did."""

    new_ids: List[int] = field(default_factory=list)
    deleted_ids: List[int] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)
    panic_triggered: bool = False
    skipped: bool = False


class WebhookGuard:
    """Per-guild webhook burst detection and remediation."""

    def __init__(
        self,
        guard: ActionGuard,
        panic: PanicStateMachine,
        store: ConfigStore,
        webhooks: WebhookOwner,
        clock: Clock,
    ) -> None:
        self.guard = guard
        self.panic = panic
        self.store = store
        self.webhooks = webhooks
        self.clock = clock

        # guild_id -> webhook_id -> first observed at, None for the baseline
        self._known: Dict[int, Dict[int, Optional[float]]] = {}
        self._counters: Dict[int, SlidingWindowCounter] = {}

    def _counter(self, window_seconds: int) -> SlidingWindowCounter:
        counter = self._counters.get(window_seconds)
        if counter is None:
            counter = SlidingWindowCounter(window_seconds, self.clock)
            self._counters[window_seconds] = counter
        return counter

    async def _load_settings(self, guild_id: int) -> WebhookSettings:
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Webhook Guard Using Defaults", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return WebhookSettings()
        return WebhookSettings.from_document(doc)

    def is_primed(self, guild_id: int) -> bool:
        return guild_id in self._known

    def known_ids(self, guild_id: int) -> List[int]:
        return list(self._known.get(guild_id, {}))

    # =========================================================================
    # Baseline
    # =========================================================================

    async def prime(self, guild_id: int) -> int:
        """
        Record the guild's current webhooks as the known baseline.

        Returns:
            Number of webhooks in the baseline, or -1 if the fetch failed.
        """
        try:
            hooks = await self.webhooks.fetch_webhooks(guild_id)
        except PlatformCallFailure as e:
            logger.warning("Webhook Baseline Failed", [
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
            ])
            return -1

        self._known[guild_id] = {hook.webhook_id: None for hook in hooks}
        logger.debug("Webhook Baseline Recorded", [
            ("Guild ID", str(guild_id)),
            ("Webhooks", str(len(hooks))),
        ])
        return len(hooks)

    def forget(self, guild_id: int) -> None:
        self._known.pop(guild_id, None)
        for counter in self._counters.values():
            counter.reset(guild_id)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def on_webhooks_update(self, guild_id: int) -> WebhookSweep:
        """Handle one webhooks-changed notification for a guild."""
        try:
            if not self.guard.assert_allowed(guild_id, ActionKind.WEBHOOK_CREATE):
                return WebhookSweep(skipped=True)

            if not self.is_primed(guild_id):
                await self.prime(guild_id)
                return WebhookSweep(skipped=True)

            settings = await self._load_settings(guild_id)

            try:
                hooks = await self.webhooks.fetch_webhooks(guild_id)
            except PlatformCallFailure as e:
                logger.warning("Webhook Fetch Failed", [
                    ("Guild ID", str(guild_id)),
                    ("Error", str(e)[:100]),
                ])
                return WebhookSweep(skipped=True)

            now = self.clock.now()
            known = self._known.setdefault(guild_id, {})
            current_ids = {hook.webhook_id for hook in hooks}

            for vanished in set(known) - current_ids:
                del known[vanished]

            new_ids = [hook.webhook_id for hook in hooks if hook.webhook_id not in known]
            for webhook_id in new_ids:
                known[webhook_id] = now

            sweep = WebhookSweep(new_ids=new_ids)
            if not new_ids or not settings.enabled:
                return sweep

            counter = self._counter(settings.window_seconds)
            count = 0
            for _ in new_ids:
                count = counter.record(guild_id)

            logger.debug("Webhook Creations Tracked", [
                ("Guild ID", str(guild_id)),
                ("New", str(len(new_ids))),
                ("Count", f"{count} / {settings.threshold}"),
            ])

            if count > settings.threshold:
                await self._remediate(guild_id, count, settings, sweep)
            return sweep

        except Exception as e:
            logger.error("Webhook Guard Failed", [
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return WebhookSweep(skipped=True)

    async def _remediate(
        self,
        guild_id: int,
        count: int,
        settings: WebhookSettings,
        sweep: WebhookSweep,
    ) -> None:
        known = self._known.get(guild_id, {})
        cutoff = self.clock.now() - settings.window_seconds
        targets = [wid for wid, seen in known.items() if seen is not None and seen >= cutoff]

        logger.security("Webhook Abuse Detected", [
            ("Guild ID", str(guild_id)),
            ("Created", f"{count} in {settings.window_seconds}s"),
            ("Threshold", str(settings.threshold)),
            ("Deleting", str(len(targets))),
        ], emoji="🪝")

        for webhook_id in targets:
            try:
                await self.webhooks.delete_webhook(
                    guild_id,
                    webhook_id,
                    reason=f"Webhook burst: {count} created in {settings.window_seconds}s",
                )
            except PlatformCallFailure as e:
                sweep.failed_ids.append(webhook_id)
                logger.warning("Webhook Delete Failed", [
                    ("Guild ID", str(guild_id)),
                    ("Webhook ID", str(webhook_id)),
                    ("Error", str(e)[:100]),
                ])
                continue
            known.pop(webhook_id, None)
            sweep.deleted_ids.append(webhook_id)
            logger.security("Webhook Removed", [
                ("Guild ID", str(guild_id)),
                ("Webhook ID", str(webhook_id)),
            ], emoji="🗑️")

        await self.store.record_event(guild_id, "webhook_remediation", {
            "count": count,
            "deleted": sweep.deleted_ids,
            "failed": sweep.failed_ids,
        })

        sweep.panic_triggered = await self.panic.escalate(
            guild_id,
            PanicLevel.MEDIUM,
            settings.panic_minutes,
            reason=f"webhook burst ({count} in {settings.window_seconds}s)",
        )

    def evict_idle(self, idle_seconds: float) -> int:
        return sum(counter.evict_idle(idle_seconds) for counter in self._counters.values())


__all__ = ["WebhookGuard", "WebhookSweep"]
