"""
Warden - Platform Adapters
==========================
"""

from .discord_platform import DiscordPlatform

__all__ = ["DiscordPlatform"]
