"""
Warden - Discord Platform Adapter
=================================

Implements the core's platform capabilities over a discord.py client.

DESIGN:
    Cached objects are used when available and the REST API otherwise.
    Role and webhook mutations go straight through the HTTP client by id
    so they work for members that are not in the cache. Every
    discord.HTTPException is logged with its status and re-raised as
    PlatformCallFailure; the core never sees discord.py types.
"""

from typing import List, Optional

import discord

from warden.core.errors import PlatformCallFailure
from warden.core.platform import MemberSnapshot, RoleRef, WebhookRef
from warden.utils.discord_rate_limit import log_http_error, with_rate_limit_retry


def _failure(e: discord.HTTPException, operation: str, context: list) -> PlatformCallFailure:
    log_http_error(e, operation, context)
    return PlatformCallFailure(operation, str(e)[:200], status=e.status)


def snapshot_member(member: discord.Member) -> MemberSnapshot:
    return MemberSnapshot(
        user_id=member.id,
        joined_at=member.joined_at,
        role_ids=frozenset(role.id for role in member.roles),
    )


class DiscordPlatform:
    """PlatformActions backed by a discord.Client."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    def _guild(self, guild_id: int, operation: str) -> discord.Guild:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            raise PlatformCallFailure(operation, f"guild {guild_id} not available")
        return guild

    # =========================================================================
    # Members
    # =========================================================================

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        guild = self._guild(guild_id, "fetch_member")
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                return None
            except discord.HTTPException as e:
                raise _failure(e, "Fetch Member", [
                    ("Guild ID", str(guild_id)),
                    ("User ID", str(user_id)),
                ]) from e
        return snapshot_member(member)

    # =========================================================================
    # Roles
    # =========================================================================

    async def fetch_role(self, guild_id: int, role_id: int) -> Optional[RoleRef]:
        guild = self._guild(guild_id, "fetch_role")
        role = guild.get_role(role_id)
        if role is None:
            try:
                roles = await guild.fetch_roles()
            except discord.HTTPException as e:
                raise _failure(e, "Fetch Roles", [("Guild ID", str(guild_id))]) from e
            role = next((r for r in roles if r.id == role_id), None)
        if role is None:
            return None
        return RoleRef(role_id=role.id, name=role.name)

    @with_rate_limit_retry()
    async def _add_role(self, guild_id: int, user_id: int, role_id: int, reason: str) -> None:
        await self.client.http.add_role(guild_id, user_id, role_id, reason=reason or None)

    @with_rate_limit_retry()
    async def _remove_role(self, guild_id: int, user_id: int, role_id: int, reason: str) -> None:
        await self.client.http.remove_role(guild_id, user_id, role_id, reason=reason or None)

    async def add_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        try:
            await self._add_role(guild_id, user_id, role_id, reason)
        except discord.HTTPException as e:
            raise _failure(e, "Add Role", [
                ("Guild ID", str(guild_id)),
                ("User ID", str(user_id)),
                ("Role ID", str(role_id)),
            ]) from e

    async def remove_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        try:
            await self._remove_role(guild_id, user_id, role_id, reason)
        except discord.HTTPException as e:
            raise _failure(e, "Remove Role", [
                ("Guild ID", str(guild_id)),
                ("User ID", str(user_id)),
                ("Role ID", str(role_id)),
            ]) from e

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_dm(self, user_id: int, content: str) -> None:
        try:
            user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
            await user.send(content)
        except discord.HTTPException as e:
            # Closed DMs are routine
            if e.status == 403:
                raise PlatformCallFailure("send_dm", "DMs closed", status=403) from e
            raise _failure(e, "Send DM", [("User ID", str(user_id))]) from e

    async def send_message(self, channel_id: int, content: str) -> None:
        try:
            channel = self.client.get_channel(channel_id) or await self.client.fetch_channel(channel_id)
            if not isinstance(channel, discord.abc.Messageable):
                raise PlatformCallFailure("send_message", f"channel {channel_id} is not messageable")
            await channel.send(content)
        except discord.HTTPException as e:
            raise _failure(e, "Send Message", [("Channel ID", str(channel_id))]) from e

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def fetch_webhooks(self, guild_id: int) -> List[WebhookRef]:
        guild = self._guild(guild_id, "fetch_webhooks")
        try:
            webhooks = await guild.webhooks()
        except discord.HTTPException as e:
            raise _failure(e, "Fetch Webhooks", [("Guild ID", str(guild_id))]) from e
        return [
            WebhookRef(
                webhook_id=hook.id,
                channel_id=hook.channel_id,
                name=hook.name or "",
                creator_id=hook.user.id if hook.user else None,
            )
            for hook in webhooks
        ]

    @with_rate_limit_retry()
    async def _delete_webhook(self, webhook_id: int, reason: str) -> None:
        await self.client.http.delete_webhook(webhook_id, reason=reason or None)

    async def delete_webhook(self, guild_id: int, webhook_id: int, reason: str = "") -> None:
        try:
            await self._delete_webhook(webhook_id, reason)
        except discord.NotFound:
            return
        except discord.HTTPException as e:
            raise _failure(e, "Delete Webhook", [
                ("Guild ID", str(guild_id)),
                ("Webhook ID", str(webhook_id)),
            ]) from e


__all__ = ["DiscordPlatform", "snapshot_member"]
