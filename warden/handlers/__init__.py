"""
Warden - Handlers Package
=========================

Event cogs that translate Discord gateway events into core calls.

DESIGN:
    Each module holds one Cog with @commands.Cog.listener decorators and
    a module-level setup() so the bot can load it with load_extension().
    Listeners convert discord.py objects to plain ids before calling the
    core and catch everything at their own boundary.

    Event routing:
    - security.py: channel/role deletes, role permission edits, webhooks
    - members.py: member join
    - verification.py: trigger word, reaction and button verification
"""

# =============================================================================
# Handler Cog Registry
# =============================================================================

HANDLER_COGS = [
    "warden.handlers.security",
    "warden.handlers.members",
    "warden.handlers.verification",
]


# =============================================================================
# Module Export
# =============================================================================

__all__ = [
    "HANDLER_COGS",
]
