"""
Warden - Main Bot Class
=======================

Discord client that wires the threat response core to the gateway.

DESIGN: Central orchestrator that:
- Builds every core service once and injects its collaborators
- Loads the handler cogs that route Discord events into the core
- Restores persisted panic and gateway locks after a restart
- Runs the housekeeping loops (idle window eviction, daily stats reset)

SERVICE INITIALIZATION ORDER:
1. __init__: clock, database, config store, panic, guard, detectors,
   verification gateway, stats reset
2. setup_hook (before on_ready): handler cogs, cleanup loop
3. on_ready: per-guild restore and webhook baseline, stats reset loop
"""

import asyncio
from datetime import datetime
from typing import Optional

import discord
from discord.ext import commands

from warden.adapters import DiscordPlatform
from warden.core.clock import get_clock
from warden.core.config import get_config
from warden.core.config_store import SqliteConfigStore
from warden.core.constants import STATE_CLEANUP_INTERVAL
from warden.core.database import get_db
from warden.core.logger import logger
from warden.security import ActionGuard, PanicStateMachine, SpikeDetector, WebhookGuard
from warden.services.verification import DailyStatsReset, VerificationGateway


# =============================================================================
# WardenBot Class
# =============================================================================

class WardenBot(commands.Bot):
    """Moderation bot hosting the threat response core."""

    # =========================================================================
    # Initialization
    # =========================================================================

    def __init__(self) -> None:
        self.config = get_config()

        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True
        intents.webhooks = True
        intents.guild_reactions = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.start_time: datetime = datetime.now()
        self.clock = get_clock()
        self.db = get_db()
        self.store = SqliteConfigStore(self.db)
        self.platform = DiscordPlatform(self)

        self.panic = PanicStateMachine(
            self.store,
            self.clock,
            default_minutes=self.config.default_panic_minutes,
        )
        self.guard = ActionGuard(self.panic)
        self.spike_detector = SpikeDetector(self.panic, self.store, self.clock)
        self.webhook_guard = WebhookGuard(
            self.guard, self.panic, self.store, self.platform, self.clock)
        self.gateway = VerificationGateway(
            self.store, self.platform, self.guard, self.panic, self.clock)
        self.stats_reset = DailyStatsReset(self.gateway)

        self._cleanup_task: Optional[asyncio.Task] = None
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Setup Hook
    # =========================================================================

    async def setup_hook(self) -> None:
        """Load handler cogs and start housekeeping before on_ready."""
        from warden.handlers import HANDLER_COGS
        for cog in HANDLER_COGS:
            try:
                await self.load_extension(cog)
                logger.info(f"Cog Loaded: {cog.split('.')[-1]}")
            except Exception as e:
                logger.error("Failed to Load Cog", [("Cog", cog), ("Error", str(e))])

        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    # =========================================================================
    # On Ready
    # =========================================================================

    async def on_ready(self) -> None:
        """Restore persisted state for every guild once connected."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        if self.config.error_webhook_url:
            logger.set_webhook(self.config.error_webhook_url)

        restored_panics = 0
        restored_locks = 0
        for guild in self.guilds:
            if guild.id in self.config.ignored_guild_ids:
                continue
            try:
                if await self.panic.restore(guild.id):
                    restored_panics += 1
                if await self.gateway.restore_lock(guild.id):
                    restored_locks += 1
                await self.webhook_guard.prime(guild.id)
            except Exception as e:
                logger.error("Guild Restore Failed", [
                    ("Guild ID", str(guild.id)),
                    ("Error", str(e)[:100]),
                    ("Type", type(e).__name__),
                ])

        await self.stats_reset.start()

        logger.tree("WARDEN READY", [
            ("Guilds", str(len(self.guilds))),
            ("Active Panics", str(restored_panics)),
            ("Gateway Locks", str(restored_locks)),
            ("Webhook Baselines", str(sum(1 for g in self.guilds if self.webhook_guard.is_primed(g.id)))),
        ], emoji="🛡️")

    # =========================================================================
    # Housekeeping
    # =========================================================================

    async def _cleanup_loop(self) -> None:
        """Drop sliding-window keys that have been idle for a while."""
        idle = self.config.state_evict_seconds
        while True:
            try:
                await asyncio.sleep(STATE_CLEANUP_INTERVAL)
                evicted = (
                    self.spike_detector.evict_idle(idle)
                    + self.webhook_guard.evict_idle(idle)
                    + self.gateway.evict_idle(idle)
                )
                if evicted:
                    logger.debug("Idle Window Keys Evicted", [("Count", str(evicted))])
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Cleanup Loop Error", [
                    ("Error", str(e)[:100]),
                    ("Type", type(e).__name__),
                ])

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """Stop background tasks, close the database and disconnect."""
        logger.info("Initiating Graceful Shutdown")

        await self.stats_reset.stop()

        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass

        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["WardenBot"]
