"""
Warden - Security Package
=========================

Threat response core: sliding windows, panic levels, the action guard,
destructive-event spike detection and webhook abuse remediation.
"""

from .sliding_window import SlidingWindowCounter
from .panic import PanicLevel, PanicState, PanicStateMachine
from .action_guard import ActionGuard, ActionKind
from .antinuke import SpikeDetector, SpikeRule
from .webhook_guard import WebhookGuard, WebhookSweep

__all__ = [
    "SlidingWindowCounter",
    "PanicLevel",
    "PanicState",
    "PanicStateMachine",
    "ActionGuard",
    "ActionKind",
    "SpikeDetector",
    "SpikeRule",
    "WebhookGuard",
    "WebhookSweep",
]
