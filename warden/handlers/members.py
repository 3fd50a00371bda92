"""
Warden - Member Events Cog
==========================

Prepares newly joined members for verification.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from warden.core.logger import logger

if TYPE_CHECKING:
    from warden.bot import WardenBot


class MemberEvents(commands.Cog):
    """Member event handlers."""

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if member.bot or member.guild.id in self.bot.config.ignored_guild_ids:
            return

        logger.debug("Member Joined", [
            ("User", str(member)),
            ("User ID", str(member.id)),
            ("Guild ID", str(member.guild.id)),
        ])

        try:
            await self.bot.gateway.on_member_join(member.guild.id, member.id)
        except Exception as e:
            logger.error("Member Join Handler Failed", [
                ("Guild ID", str(member.guild.id)),
                ("User ID", str(member.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])


async def setup(bot: "WardenBot") -> None:
    """Add the member events cog to the bot."""
    await bot.add_cog(MemberEvents(bot))
    logger.tree("Member Events Loaded", [
        ("Events", "join"),
        ("Features", "pending role, instructions DM"),
    ], emoji="👤")


__all__ = ["MemberEvents", "setup"]
