"""
Warden - Security Events Cog
============================

Routes destructive guild events to the spike detector and webhook
changes to the webhook guard.
"""

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from warden.core.errors import ConfigUnavailable
from warden.core.guild_settings import GuildSecurityConfig
from warden.core.logger import logger

if TYPE_CHECKING:
    from warden.bot import WardenBot


class SecurityEvents(commands.Cog):
    """Anti-nuke and webhook event handlers."""

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot

    def _ignored(self, guild: discord.Guild) -> bool:
        return guild is None or guild.id in self.bot.config.ignored_guild_ids

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if self._ignored(channel.guild):
            return
        try:
            await self.bot.spike_detector.on_channel_delete(channel.guild.id)
        except Exception as e:
            logger.error("Channel Delete Handler Failed", [
                ("Guild ID", str(channel.guild.id)),
                ("Channel", str(channel.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    @commands.Cog.listener()
    async def on_guild_role_delete(self, role: discord.Role) -> None:
        if self._ignored(role.guild):
            return
        try:
            await self.bot.spike_detector.on_role_delete(role.guild.id)
        except Exception as e:
            logger.error("Role Delete Handler Failed", [
                ("Guild ID", str(role.guild.id)),
                ("Role", str(role.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    @commands.Cog.listener()
    async def on_guild_role_update(self, before: discord.Role, after: discord.Role) -> None:
        """Only permission changes count toward the spike window."""
        if self._ignored(after.guild):
            return
        if before.permissions.value == after.permissions.value:
            return
        try:
            await self.bot.spike_detector.on_role_update(
                after.guild.id,
                before.permissions.value,
                after.permissions.value,
            )
        except Exception as e:
            logger.error("Role Update Handler Failed", [
                ("Guild ID", str(after.guild.id)),
                ("Role", str(after.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    @commands.Cog.listener()
    async def on_webhooks_update(self, channel: discord.abc.GuildChannel) -> None:
        if self._ignored(channel.guild):
            return
        try:
            await self.bot.webhook_guard.on_webhooks_update(channel.guild.id)
        except Exception as e:
            logger.error("Webhooks Update Handler Failed", [
                ("Guild ID", str(channel.guild.id)),
                ("Channel", str(channel.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        if self._ignored(guild):
            return
        count = await self.bot.webhook_guard.prime(guild.id)
        logger.tree("Guild Joined", [
            ("Guild", guild.name),
            ("Guild ID", str(guild.id)),
            ("Webhooks", str(count) if count >= 0 else "Unavailable"),
        ], emoji="🏰")

        try:
            doc = await self.bot.store.load_config(guild.id)
        except ConfigUnavailable:
            return
        logger.tree_nested(
            f"Security Settings: {guild.name}",
            GuildSecurityConfig.from_document(doc).summary(),
            emoji="⚙️",
        )

    @commands.Cog.listener()
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        self.bot.webhook_guard.forget(guild.id)


async def setup(bot: "WardenBot") -> None:
    """Add the security events cog to the bot."""
    await bot.add_cog(SecurityEvents(bot))
    logger.tree("Security Events Loaded", [
        ("Events", "channel/role delete, role update, webhooks"),
        ("Features", "anti-nuke, webhook guard"),
    ], emoji="🛡️")


__all__ = ["SecurityEvents", "setup"]
