"""
Warden - Guild Settings Tests
=============================

Tests for parsing the per-guild config document into typed settings.
"""

from warden.core import constants as C
from warden.core.guild_settings import (
    DEFAULT_FAILURE_MESSAGE,
    AntiNukeSettings,
    GuildSecurityConfig,
    VerificationSettings,
    WebhookSettings,
)


def introduce_doc(**section):
    return {"modules": {"introduce": section}}


class TestVerificationSettings:
    """Tests for modules.introduce."""

    def test_defaults_for_empty_document(self):
        """Test an empty document yields the documented defaults."""
        settings = VerificationSettings.from_document({})

        assert settings.enabled is True
        assert settings.verified_role_id is None
        assert settings.rate_limit_per_minute == C.VERIFY_RATE_LIMIT_PER_MINUTE
        assert settings.raid_threshold_per_minute == C.RAID_THRESHOLD_PER_MINUTE
        assert settings.lock_duration_minutes == C.GATEWAY_LOCK_MINUTES
        assert settings.auto_lock_on_raid is True
        assert settings.panic_on_raid is False
        assert settings.failure_message == DEFAULT_FAILURE_MESSAGE

    def test_reads_roles_and_security(self):
        """Test configured values are picked up."""
        settings = VerificationSettings.from_document(introduce_doc(
            mode="button",
            roles={"verified_role_id": "123", "pending_role_id": 456, "bypass_role_ids": ["7", 8, "x"]},
            security={"min_account_age_days": 7, "raid_threshold_per_minute": 20},
            messages={"error": "Nope", "welcome": "Hi"},
        ))

        assert settings.mode == "button"
        assert settings.verified_role_id == 123
        assert settings.pending_role_id == 456
        assert settings.bypass_role_ids == frozenset({7, 8})
        assert settings.min_account_age_days == 7
        assert settings.raid_threshold_per_minute == 20
        assert settings.failure_message == "Nope"
        assert settings.welcome_dm == "Hi"

    def test_invalid_numbers_fall_back(self):
        """Test negative, zero and non-numeric values are replaced by defaults."""
        settings = VerificationSettings.from_document(introduce_doc(security={
            "min_account_age_days": -3,
            "rate_limit_per_minute": 0,
            "raid_threshold_per_minute": "lots",
            "lock_duration_minutes": True,
        }))

        assert settings.min_account_age_days == C.MIN_ACCOUNT_AGE_DAYS
        assert settings.rate_limit_per_minute == C.VERIFY_RATE_LIMIT_PER_MINUTE
        assert settings.raid_threshold_per_minute == C.RAID_THRESHOLD_PER_MINUTE
        assert settings.lock_duration_minutes == C.GATEWAY_LOCK_MINUTES

    def test_malformed_sections_ignored(self):
        """Test non-dict sections do not raise."""
        settings = VerificationSettings.from_document({"modules": {"introduce": {"roles": [1, 2]}}})
        assert settings.verified_role_id is None

    def test_bad_role_id_ignored(self):
        """Test a non-numeric role id is treated as unset."""
        settings = VerificationSettings.from_document(introduce_doc(roles={"verified_role_id": "abc"}))
        assert settings.verified_role_id is None

    def test_blank_message_uses_default(self):
        """Test whitespace-only messages are ignored."""
        settings = VerificationSettings.from_document(introduce_doc(messages={"error": "   "}))
        assert settings.failure_message == DEFAULT_FAILURE_MESSAGE


class TestMatchesTrigger:
    """Tests for trigger-word matching."""

    def test_case_insensitive_exact(self):
        """Test the trigger matches ignoring case and surrounding space."""
        settings = VerificationSettings(trigger_word="Verify")
        assert settings.matches_trigger("verify")
        assert settings.matches_trigger("  VERIFY ")

    def test_partial_does_not_match(self):
        """Test the trigger must be the whole message."""
        settings = VerificationSettings(trigger_word="verify")
        assert not settings.matches_trigger("please verify me")
        assert not settings.matches_trigger("")


class TestAntiNukeSettings:
    """Tests for security.antinuke."""

    def test_defaults(self):
        """Test missing values leave the detector rules in charge."""
        settings = AntiNukeSettings.from_document({})
        assert settings.window_seconds is None
        assert settings.channel_delete_threshold is None
        assert settings.threshold_for("channel_delete") is None
        assert settings.panic_minutes == C.DEFAULT_PANIC_DURATION_MINUTES

    def test_threshold_for(self):
        """Test event types map to their thresholds."""
        settings = AntiNukeSettings.from_document({"security": {"antinuke": {
            "channel_delete_threshold": 2,
            "role_delete_threshold": 4,
            "role_permission_threshold": 6,
        }}})
        assert settings.threshold_for("channel_delete") == 2
        assert settings.threshold_for("role_delete") == 4
        assert settings.threshold_for("role_permission_update") == 6
        assert settings.threshold_for("unknown") is None

    def test_invalid_override_ignored(self):
        """Test a zero or malformed override counts as unset."""
        settings = AntiNukeSettings.from_document({"security": {"antinuke": {
            "window_seconds": 0,
            "role_delete_threshold": "lots",
        }}})
        assert settings.window_seconds is None
        assert settings.threshold_for("role_delete") is None


class TestWebhookSettings:
    """Tests for security.webhooks."""

    def test_overrides(self):
        """Test configured webhook limits are read."""
        settings = WebhookSettings.from_document({"security": {"webhooks": {
            "enabled": False,
            "threshold": 5,
            "window_seconds": 30,
        }}})
        assert settings.enabled is False
        assert settings.threshold == 5
        assert settings.window_seconds == 30


class TestGuildSecurityConfig:
    """Tests for the composite view."""

    def test_none_document(self):
        """Test a missing document parses to all defaults."""
        config = GuildSecurityConfig.from_document(None)
        assert config.webhooks.threshold == C.WEBHOOK_THRESHOLD

    def test_summary_sections(self):
        """Test the summary lists each settings group."""
        summary = GuildSecurityConfig.from_document({}).summary()
        assert [name for name, _ in summary] == ["Verification", "Anti-Nuke", "Webhooks"]
