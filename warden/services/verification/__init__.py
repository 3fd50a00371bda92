"""
Warden - Verification Package
=============================

Admission gateway for new members: checks, gateway lock, trust score
and daily stats.
"""

from .gateway import VerificationGateway
from .models import (
    Applicant,
    GatewayLock,
    RiskLevel,
    TrustScore,
    VerificationOutcome,
    VerificationResult,
)
from .scheduler import DailyStatsReset
from .trust_score import calculate_trust_score

__all__ = [
    "VerificationGateway",
    "DailyStatsReset",
    "Applicant",
    "GatewayLock",
    "RiskLevel",
    "TrustScore",
    "VerificationOutcome",
    "VerificationResult",
    "calculate_trust_score",
]
