"""
Warden - Verification Models
============================

Outcomes and value types for the admission gateway.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from warden.core.clock import ScheduledHandle


class VerificationOutcome(str, Enum):
    """Terminal outcome of one admission attempt."""

    ALREADY_VERIFIED = "already_verified"
    BYPASSED = "bypassed"
    SUCCESS = "success"
    BLOCKED_ACCOUNT_AGE = "blocked_account_age"
    BLOCKED_JOIN_AGE = "blocked_join_age"
    BLOCKED_RATE_LIMIT = "blocked_rate_limit"
    BLOCKED_PANIC = "blocked_panic"
    GATEWAY_LOCKED = "gateway_locked"
    ERROR = "error"

    @property
    def admitted(self) -> bool:
        return self in (VerificationOutcome.SUCCESS, VerificationOutcome.BYPASSED)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Applicant:
    """The user asking to be admitted."""

    guild_id: int
    user_id: int
    created_at: datetime


@dataclass(frozen=True)
class TrustScore:
    score: int
    risk: RiskLevel

    def to_record(self, calculated_at: float) -> dict:
        return {"score": self.score, "risk": self.risk.value, "calculated_at": calculated_at}


@dataclass(frozen=True)
class VerificationResult:
    outcome: VerificationOutcome
    message: str
    reason: Optional[str] = None
    trust: Optional[TrustScore] = None


@dataclass
class GatewayLock:
    """An in-memory gateway lock and the timer that lifts it."""

    guild_id: int
    locked_until: float
    reason: str
    handle: Optional[ScheduledHandle] = None

    def is_active(self, now: float) -> bool:
        return now < self.locked_until


__all__ = [
    "VerificationOutcome",
    "RiskLevel",
    "Applicant",
    "TrustScore",
    "VerificationResult",
    "GatewayLock",
]
