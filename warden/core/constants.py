"""
Warden - Centralized Constants
==============================

All magic numbers and default thresholds are defined here.
Per-guild values in the config store override the defaults.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

# =============================================================================
# Panic Constants
# =============================================================================

DEFAULT_PANIC_DURATION_MINUTES = 15   # Duration used by the detectors
MIN_PANIC_DURATION_MINUTES = 1        # Shorter requests are floored to this

# =============================================================================
# Anti-Nuke Defaults (events per window)
# =============================================================================

SPIKE_WINDOW_SECONDS = 10
CHANNEL_DELETE_THRESHOLD = 5
ROLE_DELETE_THRESHOLD = 5
ROLE_PERMISSION_UPDATE_THRESHOLD = 6

# =============================================================================
# Webhook Guard Defaults
# =============================================================================

WEBHOOK_WINDOW_SECONDS = 60
WEBHOOK_THRESHOLD = 3                 # Strictly more than this triggers remediation

# =============================================================================
# Verification Gateway Defaults
# =============================================================================

VERIFY_RATE_LIMIT_PER_MINUTE = 3      # Attempts per user
RAID_THRESHOLD_PER_MINUTE = 15        # Attempts per guild
GATEWAY_LOCK_MINUTES = 10
MIN_ACCOUNT_AGE_DAYS = 0
MIN_JOIN_AGE_MINUTES = 0
VERIFY_WINDOW_SECONDS = 60
NEW_ACCOUNT_DAYS = 7                  # Younger accounts get the new-account role

# =============================================================================
# Trust Score
# =============================================================================

TRUST_SCORE_MIN = 0
TRUST_SCORE_MAX = 100
TRUST_LOW_RISK_SCORE = 70             # Scores >= this are low risk
TRUST_MEDIUM_RISK_SCORE = 40          # Scores >= this are medium risk
FAST_VERIFICATION_SECONDS = 5 * SECONDS_PER_MINUTE

# =============================================================================
# Housekeeping
# =============================================================================

STATE_EVICT_AFTER_SECONDS = SECONDS_PER_HOUR   # Idle window keys are dropped
STATE_CLEANUP_INTERVAL = 10 * SECONDS_PER_MINUTE
