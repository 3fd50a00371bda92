"""
Warden
======

Discord moderation bot built around a threat response core: panic
lockdown, anti-nuke spike detection, webhook abuse remediation and a
verification gateway for new members.
"""

__version__ = "1.0.0"
