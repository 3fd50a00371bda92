"""
Warden - Trust Score
====================

Heuristic 0-100 trust estimate computed when a member verifies.

    account age   >= 365 days +30, >= 30 days +15, otherwise +5
    attempts      1 +20, 2-3 +10, more +0
    latency       under 5 minutes +10, otherwise +5

Risk: >= 70 low, >= 40 medium, below 40 high.
"""

from typing import Optional

from warden.core.constants import (
    FAST_VERIFICATION_SECONDS,
    TRUST_LOW_RISK_SCORE,
    TRUST_MEDIUM_RISK_SCORE,
    TRUST_SCORE_MAX,
    TRUST_SCORE_MIN,
)

from .models import RiskLevel, TrustScore


def risk_for(score: int) -> RiskLevel:
    if score >= TRUST_LOW_RISK_SCORE:
        return RiskLevel.LOW
    if score >= TRUST_MEDIUM_RISK_SCORE:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def calculate_trust_score(
    account_age_days: int,
    attempts: int = 1,
    verification_seconds: Optional[float] = None,
) -> TrustScore:
    """
    Score a verifying member.

    Args:
        account_age_days: Whole days since the account was created.
        attempts: Verification attempts made, including this one.
        verification_seconds: Time from joining to verifying. None scores as slow.
    """
    score = 0

    if account_age_days >= 365:
        score += 30
    elif account_age_days >= 30:
        score += 15
    else:
        score += 5

    if attempts == 1:
        score += 20
    elif 2 <= attempts <= 3:
        score += 10

    if verification_seconds is not None and verification_seconds < FAST_VERIFICATION_SECONDS:
        score += 10
    else:
        score += 5

    score = max(TRUST_SCORE_MIN, min(TRUST_SCORE_MAX, score))
    return TrustScore(score=score, risk=risk_for(score))


__all__ = ["calculate_trust_score", "risk_for"]
