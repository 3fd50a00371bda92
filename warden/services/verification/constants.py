"""
Warden - Verification Constants
===============================

Document paths and reason codes used by the admission gateway.
"""

# Config document paths
STATS_PATH = ("modules", "introduce", "stats")
INTRODUCED_USERS_PATH = ("modules", "introduce", "introduced_users")
LOCK_PATH = ("modules", "gateway_v4", "slots", "lock")

# Stats fields
TOTAL_VERIFIED = "total_verified"
TOTAL_BLOCKED = "total_blocked"
TODAY_VERIFIED = "today_verified"
TODAY_BLOCKED = "today_blocked"
STATS_FIELDS = (TOTAL_VERIFIED, TOTAL_BLOCKED, TODAY_VERIFIED, TODAY_BLOCKED)

# Reasons carried on ERROR results
REASON_NOT_CONFIGURED = "not_configured"
REASON_CONFIG_UNAVAILABLE = "config_unavailable"
REASON_ROLE_ASSIGN_FAILED = "role_assign_failed"
REASON_INTERNAL = "internal_error"

# Lock reasons
RAID_LOCK_REASON = "Raid detected"
MANUAL_LOCK_REASON = "Manual lock"
