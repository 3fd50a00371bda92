"""
Warden - Platform Capabilities
==============================

Narrow interfaces the security core uses to act on the chat platform.

DESIGN:
    The core never touches discord.py objects. It asks for exactly the
    capabilities it needs (fetch a member, add or remove a role, list and
    delete webhooks, send a DM) through these protocols, and the adapter
    in warden.adapters implements them over a discord.Client.

    Every method may raise PlatformCallFailure. Role mutations are
    idempotent: adding a role the member already has, or removing one it
    lacks, succeeds.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import FrozenSet, List, Optional, Protocol


# =============================================================================
# Value Types
# =============================================================================

@dataclass(frozen=True)
class MemberSnapshot:
    """A guild member as seen at fetch time."""

    user_id: int
    joined_at: Optional[datetime] = None
    role_ids: FrozenSet[int] = field(default_factory=frozenset)

    def has_any_role(self, role_ids) -> bool:
        return bool(self.role_ids & frozenset(role_ids))


@dataclass(frozen=True)
class RoleRef:
    role_id: int
    name: str = ""


@dataclass(frozen=True)
class WebhookRef:
    webhook_id: int
    channel_id: Optional[int] = None
    name: str = ""
    creator_id: Optional[int] = None


# =============================================================================
# Capabilities
# =============================================================================

class MemberDirectory(Protocol):
    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        """Return the member, or None if they are not in the guild."""
        ...


class RoleMutable(Protocol):
    async def fetch_role(self, guild_id: int, role_id: int) -> Optional[RoleRef]:
        """Return the role, or None if it does not exist."""
        ...

    async def add_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        ...

    async def remove_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        ...


class Messageable(Protocol):
    async def send_dm(self, user_id: int, content: str) -> None:
        ...

    async def send_message(self, channel_id: int, content: str) -> None:
        ...


class WebhookOwner(Protocol):
    async def fetch_webhooks(self, guild_id: int) -> List[WebhookRef]:
        ...

    async def delete_webhook(self, guild_id: int, webhook_id: int, reason: str = "") -> None:
        ...


class PlatformActions(MemberDirectory, RoleMutable, Messageable, WebhookOwner, Protocol):
    """Every capability the core consumes."""


__all__ = [
    "MemberSnapshot",
    "RoleRef",
    "WebhookRef",
    "MemberDirectory",
    "RoleMutable",
    "Messageable",
    "WebhookOwner",
    "PlatformActions",
]
