"""
Warden - Anti-Nuke Package
==========================

Spike detection for destructive guild events.
"""

from .service import SpikeDetector, SpikeRule
from .constants import CHANNEL_DELETE, ROLE_DELETE, ROLE_PERMISSION_UPDATE

__all__ = [
    "SpikeDetector",
    "SpikeRule",
    "CHANNEL_DELETE",
    "ROLE_DELETE",
    "ROLE_PERMISSION_UPDATE",
]
