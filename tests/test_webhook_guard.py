"""
Warden - Webhook Guard Tests
============================
"""

import pytest

from warden.security.panic import PanicLevel

from conftest import GUILD_ID, OTHER_GUILD_ID


async def create_one(platform, webhook_guard, webhook_id):
    platform.create_webhook(GUILD_ID, webhook_id)
    return await webhook_guard.on_webhooks_update(GUILD_ID)


class TestBaseline:
    """Tests for priming the known webhook set."""

    @pytest.mark.asyncio
    async def test_prime_records_existing(self, webhook_guard, platform):
        """Test priming remembers the current webhooks."""
        platform.create_webhook(GUILD_ID, 1)
        platform.create_webhook(GUILD_ID, 2)

        assert await webhook_guard.prime(GUILD_ID) == 2
        assert webhook_guard.is_primed(GUILD_ID)
        assert sorted(webhook_guard.known_ids(GUILD_ID)) == [1, 2]

    @pytest.mark.asyncio
    async def test_first_notification_primes(self, webhook_guard, platform, panic):
        """Test an unprimed guild takes a baseline and counts nothing."""
        for webhook_id in range(1, 8):
            platform.create_webhook(GUILD_ID, webhook_id)

        sweep = await webhook_guard.on_webhooks_update(GUILD_ID)

        assert sweep.skipped is True
        assert sweep.new_ids == []
        assert webhook_guard.is_primed(GUILD_ID)
        assert platform.deleted_webhooks == []
        assert panic.get_level(GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_prime_failure(self, webhook_guard, platform):
        """Test a failed fetch leaves the guild unprimed."""
        platform.fail.add("fetch_webhooks")
        assert await webhook_guard.prime(GUILD_ID) == -1
        assert not webhook_guard.is_primed(GUILD_ID)

    @pytest.mark.asyncio
    async def test_forget(self, webhook_guard):
        """Test forgetting a guild drops its baseline."""
        await webhook_guard.prime(GUILD_ID)
        webhook_guard.forget(GUILD_ID)
        assert not webhook_guard.is_primed(GUILD_ID)


class TestBurstRemediation:
    """Tests for detecting and remediating webhook bursts."""

    @pytest.mark.asyncio
    async def test_four_creations_remediated(self, webhook_guard, platform, panic, store):
        """Test a burst of four in 60s deletes all four and enables MEDIUM."""
        await webhook_guard.prime(GUILD_ID)

        for webhook_id in (11, 12, 13):
            sweep = await create_one(platform, webhook_guard, webhook_id)
            assert sweep.panic_triggered is False
        sweep = await create_one(platform, webhook_guard, 14)

        assert sorted(sweep.deleted_ids) == [11, 12, 13, 14]
        assert sorted(platform.deleted_webhooks) == [11, 12, 13, 14]
        assert sweep.panic_triggered is True
        assert panic.get_level(GUILD_ID) is PanicLevel.MEDIUM
        assert "webhook_remediation" in store.event_types(GUILD_ID)

    @pytest.mark.asyncio
    async def test_burst_in_one_notification(self, webhook_guard, platform, panic):
        """Test several webhooks seen in one fetch each count."""
        await webhook_guard.prime(GUILD_ID)
        for webhook_id in (21, 22, 23, 24):
            platform.create_webhook(GUILD_ID, webhook_id)

        sweep = await webhook_guard.on_webhooks_update(GUILD_ID)

        assert sorted(sweep.new_ids) == [21, 22, 23, 24]
        assert sorted(sweep.deleted_ids) == [21, 22, 23, 24]
        assert panic.get_level(GUILD_ID) is PanicLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_three_is_allowed(self, webhook_guard, platform, panic):
        """Test reaching the threshold without exceeding it is fine."""
        await webhook_guard.prime(GUILD_ID)
        for webhook_id in (31, 32, 33):
            await create_one(platform, webhook_guard, webhook_id)

        assert platform.deleted_webhooks == []
        assert panic.get_level(GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_slow_creations_allowed(self, webhook_guard, platform, panic, clock):
        """Test creations spread beyond the window never trigger."""
        await webhook_guard.prime(GUILD_ID)
        for webhook_id in range(41, 47):
            await create_one(platform, webhook_guard, webhook_id)
            clock.tick(30)

        assert platform.deleted_webhooks == []
        assert panic.get_level(GUILD_ID) is None

    @pytest.mark.asyncio
    async def test_baseline_webhooks_kept(self, webhook_guard, platform):
        """Test webhooks from the baseline are never deleted."""
        platform.create_webhook(GUILD_ID, 1)
        await webhook_guard.prime(GUILD_ID)

        for webhook_id in (51, 52, 53, 54):
            await create_one(platform, webhook_guard, webhook_id)

        assert 1 not in platform.deleted_webhooks
        assert 1 in platform.webhooks[GUILD_ID]

    @pytest.mark.asyncio
    async def test_failed_deletes_reported(self, webhook_guard, platform, panic):
        """Test one failed delete does not stop the others or the escalation."""
        await webhook_guard.prime(GUILD_ID)
        platform.fail_webhook_ids.add(62)

        for webhook_id in (61, 62, 63):
            await create_one(platform, webhook_guard, webhook_id)
        sweep = await create_one(platform, webhook_guard, 64)

        assert sweep.failed_ids == [62]
        assert sorted(sweep.deleted_ids) == [61, 63, 64]
        assert panic.get_level(GUILD_ID) is PanicLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_deleted_webhooks_not_recounted(self, webhook_guard, platform):
        """Test a vanished webhook is dropped and not seen as new later."""
        await webhook_guard.prime(GUILD_ID)
        await create_one(platform, webhook_guard, 71)
        platform.webhooks[GUILD_ID].pop(71)

        sweep = await webhook_guard.on_webhooks_update(GUILD_ID)
        assert sweep.new_ids == []
        assert 71 not in webhook_guard.known_ids(GUILD_ID)

    @pytest.mark.asyncio
    async def test_guild_threshold_override(self, webhook_guard, platform, panic, store):
        """Test the guild's threshold replaces the default."""
        store.documents[GUILD_ID] = {"security": {"webhooks": {"threshold": 1}}}
        await webhook_guard.prime(GUILD_ID)
        await create_one(platform, webhook_guard, 81)
        sweep = await create_one(platform, webhook_guard, 82)

        assert sorted(sweep.deleted_ids) == [81, 82]
        assert panic.get_level(GUILD_ID) is PanicLevel.MEDIUM


class TestGuardAndFailures:
    """Tests for panic gating and platform failures."""

    @pytest.mark.asyncio
    async def test_skipped_during_medium_panic(self, webhook_guard, platform, panic):
        """Test the pass does nothing while WEBHOOK_CREATE is blocked."""
        await webhook_guard.prime(GUILD_ID)
        await panic.enable_panic(GUILD_ID, PanicLevel.MEDIUM)
        fetches = platform.webhook_fetches

        sweep = await create_one(platform, webhook_guard, 91)

        assert sweep.skipped is True
        assert platform.webhook_fetches == fetches

    @pytest.mark.asyncio
    async def test_fetch_failure_skips(self, webhook_guard, platform):
        """Test a failed fetch returns a skipped sweep."""
        await webhook_guard.prime(GUILD_ID)
        platform.fail.add("fetch_webhooks")
        sweep = await webhook_guard.on_webhooks_update(GUILD_ID)
        assert sweep.skipped is True

    @pytest.mark.asyncio
    async def test_guilds_isolated(self, webhook_guard, platform, panic):
        """Test a burst in one guild leaves another guild alone."""
        await webhook_guard.prime(GUILD_ID)
        await webhook_guard.prime(OTHER_GUILD_ID)
        for webhook_id in (101, 102, 103, 104):
            await create_one(platform, webhook_guard, webhook_id)

        platform.create_webhook(OTHER_GUILD_ID, 201)
        sweep = await webhook_guard.on_webhooks_update(OTHER_GUILD_ID)

        assert sweep.new_ids == [201]
        assert panic.get_level(OTHER_GUILD_ID) is None
