"""
Warden - Verification Events Cog
================================

Starts verification from a trigger word, a reaction or a button press.

DESIGN:
    Each entry point only runs when the guild's verification mode matches
    it, so one guild uses exactly one of them. Messages and reactions are
    further restricted to verify_channel_id when it is set. The result
    message goes back through the same surface the member used: a reply,
    a DM, or an ephemeral follow-up.
"""

from typing import TYPE_CHECKING, Optional

import discord
from discord.ext import commands

from warden.core.errors import PlatformCallFailure
from warden.core.guild_settings import VerificationSettings
from warden.core.logger import logger
from warden.services.verification import Applicant, VerificationResult

if TYPE_CHECKING:
    from warden.bot import WardenBot


MODE_TRIGGER = "trigger"
MODE_REACTION = "reaction"
MODE_BUTTON = "button"


def emoji_matches(emoji: discord.PartialEmoji, configured: str) -> bool:
    """Match a reaction against a unicode emoji or a custom emoji string."""
    if not configured:
        return False
    return emoji.name == configured or str(emoji) == configured


class VerificationEvents(commands.Cog):
    """Verification entry points."""

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot

    async def _settings(self, guild_id: int, mode: str) -> Optional[VerificationSettings]:
        if guild_id in self.bot.config.ignored_guild_ids:
            return None
        settings = await self.bot.gateway.load_settings(guild_id)
        if settings is None or not settings.enabled or settings.mode != mode:
            return None
        return settings

    async def _verify(self, guild_id: int, user_id: int, mode: str) -> VerificationResult:
        applicant = Applicant(
            guild_id=guild_id,
            user_id=user_id,
            created_at=discord.utils.snowflake_time(user_id),
        )
        return await self.bot.gateway.process(applicant, mode=mode)

    # =========================================================================
    # Trigger Word
    # =========================================================================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return

        try:
            settings = await self._settings(message.guild.id, MODE_TRIGGER)
            if settings is None:
                return
            if settings.verify_channel_id and message.channel.id != settings.verify_channel_id:
                return
            if not settings.matches_trigger(message.content):
                return

            result = await self._verify(message.guild.id, message.author.id, MODE_TRIGGER)
            try:
                await message.reply(result.message, mention_author=False)
            except discord.HTTPException as e:
                logger.debug("Verification Reply Failed", [
                    ("Channel ID", str(message.channel.id)),
                    ("Error", str(e)[:100]),
                ])

        except Exception as e:
            logger.error("Trigger Verification Failed", [
                ("Guild ID", str(message.guild.id)),
                ("User ID", str(message.author.id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    # =========================================================================
    # Reaction
    # =========================================================================

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        if payload.guild_id is None:
            return
        if payload.member is not None and payload.member.bot:
            return
        if self.bot.user and payload.user_id == self.bot.user.id:
            return

        try:
            settings = await self._settings(payload.guild_id, MODE_REACTION)
            if settings is None:
                return
            if settings.verify_channel_id and payload.channel_id != settings.verify_channel_id:
                return
            if not emoji_matches(payload.emoji, settings.reaction_emoji):
                return

            result = await self._verify(payload.guild_id, payload.user_id, MODE_REACTION)
            try:
                await self.bot.platform.send_dm(payload.user_id, result.message)
            except PlatformCallFailure as e:
                logger.debug("Verification DM Failed", [
                    ("User ID", str(payload.user_id)),
                    ("Error", str(e)[:100]),
                ])

        except Exception as e:
            logger.error("Reaction Verification Failed", [
                ("Guild ID", str(payload.guild_id)),
                ("User ID", str(payload.user_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])

    # =========================================================================
    # Button
    # =========================================================================

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component or interaction.guild_id is None:
            return
        custom_id = (interaction.data or {}).get("custom_id", "")

        try:
            settings = await self._settings(interaction.guild_id, MODE_BUTTON)
            if settings is None or not custom_id.startswith(settings.button_id):
                return

            await interaction.response.defer(ephemeral=True, thinking=True)
            result = await self._verify(interaction.guild_id, interaction.user.id, MODE_BUTTON)
            await interaction.followup.send(result.message, ephemeral=True)

        except Exception as e:
            logger.error("Button Verification Failed", [
                ("Guild ID", str(interaction.guild_id)),
                ("User ID", str(interaction.user.id)),
                ("Custom ID", custom_id[:50]),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])


async def setup(bot: "WardenBot") -> None:
    """Add the verification events cog to the bot."""
    await bot.add_cog(VerificationEvents(bot))
    logger.tree("Verification Events Loaded", [
        ("Events", "message, reaction add, interaction"),
        ("Modes", f"{MODE_TRIGGER}, {MODE_REACTION}, {MODE_BUTTON}"),
    ], emoji="🚪")


__all__ = ["VerificationEvents", "emoji_matches", "setup"]
