"""
Warden - Guild Security Settings
================================

Typed, read-only views over the per-guild config document.

DESIGN:
    The config document is free-form JSON edited by an external
    dashboard. These dataclasses pull out the fields the security core
    needs and substitute documented defaults for anything missing or
    malformed. A bad value never raises: it is logged and replaced.

    Document layout:
        modules.introduce           VerificationSettings
        modules.gateway_v4.slots    gateway lock mirror (see verification)
        security.antinuke           AntiNukeSettings
        security.webhooks           WebhookSettings
        security.panic              panic mirror (see PanicStateMachine)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional

from warden.core import constants as C
from warden.core.config_store import get_path
from warden.core.logger import logger


INTRODUCE_PATH = ("modules", "introduce")
ANTINUKE_PATH = ("security", "antinuke")
WEBHOOKS_PATH = ("security", "webhooks")

DEFAULT_FAILURE_MESSAGE = "Verification failed. Please contact an administrator."


# =============================================================================
# Parse Helpers
# =============================================================================

def _non_negative_int(section: Dict[str, Any], key: str, default: int) -> int:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        value = None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Guild setting {key}={value!r} invalid, using default {default}")
        return default
    if parsed < 0:
        logger.warning(f"Guild setting {key}={parsed} negative, using default {default}")
        return default
    return parsed


def _positive_int(section: Dict[str, Any], key: str, default: int) -> int:
    parsed = _non_negative_int(section, key, default)
    if parsed == 0:
        logger.warning(f"Guild setting {key}=0 not allowed, using default {default}")
        return default
    return parsed


def _override_int(section: Dict[str, Any], key: str) -> Optional[int]:
    """A positive integer when the guild sets one, otherwise None."""
    if section.get(key) is None:
        return None
    parsed = _non_negative_int(section, key, 0)
    return parsed or None


def _optional_id(section: Dict[str, Any], key: str) -> Optional[int]:
    value = section.get(key)
    if value in (None, "", 0):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Guild setting {key}={value!r} is not an ID, ignoring")
        return None


def _id_set(value: Any) -> FrozenSet[int]:
    if not isinstance(value, (list, tuple, set)):
        return frozenset()
    ids = set()
    for item in value:
        try:
            ids.add(int(item))
        except (TypeError, ValueError):
            continue
    return frozenset(ids)


def _bool(section: Dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    return value if isinstance(value, bool) else default


def _text(section: Dict[str, Any], key: str, default: Optional[str]) -> Optional[str]:
    value = section.get(key)
    return value if isinstance(value, str) and value.strip() else default


def _section(doc: Dict[str, Any], path) -> Dict[str, Any]:
    value = get_path(doc, path, {})
    return value if isinstance(value, dict) else {}


def _limit_text(threshold: Optional[int], window: Optional[int]) -> str:
    if threshold is None and window is None:
        return "Default"
    return f"{threshold or 'default'}/{window or 'default'}s"


# =============================================================================
# Verification
# =============================================================================

@dataclass(frozen=True)
class VerificationSettings:
    """
    Admission gateway settings from modules.introduce.

    Roles:
        verified_role_id: Granted on successful verification (required).
        pending_role_id: Given on join, removed on success.
        remove_role_id: Extra role removed on success.
        new_account_role_id: Marker for accounts younger than a week.
        suspicious_role_id: Marker for accounts under twice the minimum age.
        bypass_role_ids: Members holding any of these skip the checks.
    """

    enabled: bool = True
    mode: str = "trigger"
    trigger_word: str = "verify"
    reaction_emoji: str = "✅"
    button_id: str = "warden:verify"
    verify_channel_id: Optional[int] = None

    verified_role_id: Optional[int] = None
    pending_role_id: Optional[int] = None
    remove_role_id: Optional[int] = None
    new_account_role_id: Optional[int] = None
    suspicious_role_id: Optional[int] = None
    bypass_role_ids: FrozenSet[int] = field(default_factory=frozenset)

    min_account_age_days: int = C.MIN_ACCOUNT_AGE_DAYS
    min_join_minutes: int = C.MIN_JOIN_AGE_MINUTES
    rate_limit_per_minute: int = C.VERIFY_RATE_LIMIT_PER_MINUTE
    raid_threshold_per_minute: int = C.RAID_THRESHOLD_PER_MINUTE
    auto_lock_on_raid: bool = True
    lock_duration_minutes: int = C.GATEWAY_LOCK_MINUTES
    panic_on_raid: bool = False

    success_message: str = "You have been verified. Welcome!"
    already_message: str = "You are already verified."
    failure_message: str = DEFAULT_FAILURE_MESSAGE
    instructions_dm: Optional[str] = None
    welcome_dm: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "VerificationSettings":
        section = _section(doc, INTRODUCE_PATH)
        roles = section.get("roles") if isinstance(section.get("roles"), dict) else {}
        security = section.get("security") if isinstance(section.get("security"), dict) else {}
        messages = section.get("messages") if isinstance(section.get("messages"), dict) else {}

        return cls(
            enabled=_bool(section, "enabled", True),
            mode=_text(section, "mode", "trigger"),
            trigger_word=_text(section, "trigger_word", "verify"),
            reaction_emoji=_text(section, "reaction_emoji", "✅"),
            button_id=_text(section, "button_id", "warden:verify"),
            verify_channel_id=_optional_id(section, "verify_channel_id"),
            verified_role_id=_optional_id(roles, "verified_role_id"),
            pending_role_id=_optional_id(roles, "pending_role_id"),
            remove_role_id=_optional_id(roles, "remove_role_id"),
            new_account_role_id=_optional_id(roles, "new_account_role_id"),
            suspicious_role_id=_optional_id(roles, "suspicious_role_id"),
            bypass_role_ids=_id_set(roles.get("bypass_role_ids")),
            min_account_age_days=_non_negative_int(
                security, "min_account_age_days", C.MIN_ACCOUNT_AGE_DAYS),
            min_join_minutes=_non_negative_int(
                security, "min_join_minutes", C.MIN_JOIN_AGE_MINUTES),
            rate_limit_per_minute=_positive_int(
                security, "rate_limit_per_minute", C.VERIFY_RATE_LIMIT_PER_MINUTE),
            raid_threshold_per_minute=_positive_int(
                security, "raid_threshold_per_minute", C.RAID_THRESHOLD_PER_MINUTE),
            auto_lock_on_raid=_bool(security, "auto_lock_on_raid", True),
            lock_duration_minutes=_positive_int(
                security, "lock_duration_minutes", C.GATEWAY_LOCK_MINUTES),
            panic_on_raid=_bool(security, "panic_on_raid", False),
            success_message=_text(messages, "success", cls.success_message),
            already_message=_text(messages, "already", cls.already_message),
            failure_message=_text(messages, "error", DEFAULT_FAILURE_MESSAGE),
            instructions_dm=_text(messages, "dm", None),
            welcome_dm=_text(messages, "welcome", None),
        )

    def matches_trigger(self, content: str) -> bool:
        """Case-insensitive exact match of a message against the trigger word."""
        if not content or not self.trigger_word:
            return False
        return content.strip().lower() == self.trigger_word.strip().lower()


# =============================================================================
# Anti-Nuke
# =============================================================================

@dataclass(frozen=True)
class AntiNukeSettings:
    """
    Spike overrides from security.antinuke.

    Thresholds and the window are None unless the guild sets them, in
    which case the detector's own rule applies.
    """

    enabled: bool = True
    window_seconds: Optional[int] = None
    channel_delete_threshold: Optional[int] = None
    role_delete_threshold: Optional[int] = None
    role_permission_threshold: Optional[int] = None
    panic_minutes: int = C.DEFAULT_PANIC_DURATION_MINUTES

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AntiNukeSettings":
        section = _section(doc, ANTINUKE_PATH)
        return cls(
            enabled=_bool(section, "enabled", True),
            window_seconds=_override_int(section, "window_seconds"),
            channel_delete_threshold=_override_int(section, "channel_delete_threshold"),
            role_delete_threshold=_override_int(section, "role_delete_threshold"),
            role_permission_threshold=_override_int(section, "role_permission_threshold"),
            panic_minutes=_positive_int(
                section, "panic_minutes", C.DEFAULT_PANIC_DURATION_MINUTES),
        )

    def threshold_for(self, event_type: str) -> Optional[int]:
        """The guild's threshold for a built-in event type, if it set one."""
        return {
            "channel_delete": self.channel_delete_threshold,
            "role_delete": self.role_delete_threshold,
            "role_permission_update": self.role_permission_threshold,
        }.get(event_type)


# =============================================================================
# Webhooks
# =============================================================================

@dataclass(frozen=True)
class WebhookSettings:
    """Webhook burst limits from security.webhooks."""

    enabled: bool = True
    threshold: int = C.WEBHOOK_THRESHOLD
    window_seconds: int = C.WEBHOOK_WINDOW_SECONDS
    panic_minutes: int = C.DEFAULT_PANIC_DURATION_MINUTES

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "WebhookSettings":
        section = _section(doc, WEBHOOKS_PATH)
        return cls(
            enabled=_bool(section, "enabled", True),
            threshold=_positive_int(section, "threshold", C.WEBHOOK_THRESHOLD),
            window_seconds=_positive_int(section, "window_seconds", C.WEBHOOK_WINDOW_SECONDS),
            panic_minutes=_positive_int(section, "panic_minutes", C.DEFAULT_PANIC_DURATION_MINUTES),
        )


# =============================================================================
# Composite
# =============================================================================

@dataclass(frozen=True)
class GuildSecurityConfig:
    """All security settings for one guild."""

    verification: VerificationSettings = field(default_factory=VerificationSettings)
    antinuke: AntiNukeSettings = field(default_factory=AntiNukeSettings)
    webhooks: WebhookSettings = field(default_factory=WebhookSettings)

    @classmethod
    def from_document(cls, doc: Optional[Dict[str, Any]]) -> "GuildSecurityConfig":
        doc = doc if isinstance(doc, dict) else {}
        return cls(
            verification=VerificationSettings.from_document(doc),
            antinuke=AntiNukeSettings.from_document(doc),
            webhooks=WebhookSettings.from_document(doc),
        )

    def summary(self):
        """Sections for logger.tree_nested."""
        v = self.verification
        a = self.antinuke
        return [
            ("Verification", [
                ("Verified Role", str(v.verified_role_id or "Not set")),
                ("Rate Limit", f"{v.rate_limit_per_minute}/min"),
                ("Raid Threshold", f"{v.raid_threshold_per_minute}/min"),
                ("Min Account Age", f"{v.min_account_age_days}d"),
            ]),
            ("Anti-Nuke", [
                ("Channel Delete", _limit_text(a.channel_delete_threshold, a.window_seconds)),
                ("Role Delete", _limit_text(a.role_delete_threshold, a.window_seconds)),
                ("Role Permissions", _limit_text(a.role_permission_threshold, a.window_seconds)),
            ]),
            ("Webhooks", [
                ("Threshold", f"{self.webhooks.threshold}/{self.webhooks.window_seconds}s"),
            ]),
        ]


__all__ = [
    "VerificationSettings",
    "AntiNukeSettings",
    "WebhookSettings",
    "GuildSecurityConfig",
    "DEFAULT_FAILURE_MESSAGE",
    "INTRODUCE_PATH",
]
