"""
Warden - Anti-Nuke Constants
============================

Event types watched by the spike detector and their default limits.
"""

from warden.core.constants import (
    CHANNEL_DELETE_THRESHOLD,
    ROLE_DELETE_THRESHOLD,
    ROLE_PERMISSION_UPDATE_THRESHOLD,
    SPIKE_WINDOW_SECONDS,
)

# Event types
CHANNEL_DELETE = "channel_delete"
ROLE_DELETE = "role_delete"
ROLE_PERMISSION_UPDATE = "role_permission_update"

# event type -> (threshold, window seconds)
DEFAULT_RULES = {
    CHANNEL_DELETE: (CHANNEL_DELETE_THRESHOLD, SPIKE_WINDOW_SECONDS),
    ROLE_DELETE: (ROLE_DELETE_THRESHOLD, SPIKE_WINDOW_SECONDS),
    ROLE_PERMISSION_UPDATE: (ROLE_PERMISSION_UPDATE_THRESHOLD, SPIKE_WINDOW_SECONDS),
}


__all__ = [
    "CHANNEL_DELETE",
    "ROLE_DELETE",
    "ROLE_PERMISSION_UPDATE",
    "DEFAULT_RULES",
]
