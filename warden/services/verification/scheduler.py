"""
Warden - Daily Stats Reset
==========================

Background task that zeroes each guild's today_* verification counters
at midnight Eastern time.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from warden.core.logger import NY_TZ, logger

from .gateway import VerificationGateway


def seconds_until_midnight(now: Optional[datetime] = None) -> float:
    """Seconds from now until the next Eastern midnight."""
    now = now or datetime.now(NY_TZ)
    tomorrow = (now + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return max(1.0, (tomorrow - now).total_seconds())


class DailyStatsReset:
    """
    Runs VerificationGateway.reset_daily_stats() for every stored guild
    once a day.
    """

    def __init__(self, gateway: VerificationGateway) -> None:
        self.gateway = gateway
        self.task: Optional[asyncio.Task] = None
        self.running: bool = False

    async def start(self) -> None:
        if self.task and not self.task.done():
            self.task.cancel()

        self.running = True
        self.task = asyncio.create_task(self._loop())

        logger.tree("Daily Stats Reset Started", [
            ("Next Run", f"{int(seconds_until_midnight())}s"),
        ], emoji="⏰")

    async def stop(self) -> None:
        self.running = False

        if self.task and not self.task.done():
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Daily Stats Reset Stopped")

    async def _loop(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(seconds_until_midnight())
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Daily Stats Reset Error", [
                    ("Error", str(e)[:100]),
                    ("Type", type(e).__name__),
                ])
                await asyncio.sleep(60)

    async def run_once(self) -> int:
        """Reset every guild now. Returns the number of guilds reset."""
        count = 0
        for guild_id in list(self.gateway.store.guild_ids()):
            await self.gateway.reset_daily_stats(guild_id)
            count += 1

        logger.tree("Daily Verification Stats Reset", [
            ("Guilds", str(count)),
        ], emoji="📊")
        return count


__all__ = ["DailyStatsReset", "seconds_until_midnight"]
