"""
Warden - Test Fixtures
======================

Shared fixtures for all tests: a manually driven clock, an in-memory
config store that can simulate outages, and a fake platform that records
every call.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

# Set up test environment before importing modules
os.environ.setdefault("WARDEN_LOGS_DIR", tempfile.mkdtemp(prefix="warden-logs-"))
os.environ.pop("DEBUG", None)

from warden.core.config_store import MemoryConfigStore
from warden.core.errors import ConfigUnavailable, PlatformCallFailure
from warden.core.platform import MemberSnapshot, RoleRef, WebhookRef
from warden.security import ActionGuard, PanicStateMachine, SpikeDetector, WebhookGuard
from warden.services.verification import Applicant, VerificationGateway


GUILD_ID = 1000
OTHER_GUILD_ID = 2000
VERIFIED_ROLE_ID = 5001
PENDING_ROLE_ID = 5002
REMOVE_ROLE_ID = 5003
NEW_ACCOUNT_ROLE_ID = 5004
SUSPICIOUS_ROLE_ID = 5005
BYPASS_ROLE_ID = 5006

START_TIME = 1_700_000_000.0


# =============================================================================
# Clock
# =============================================================================

class ManualHandle:
    """Scheduled callback driven by ManualClock.advance()."""

    def __init__(self, due: float, callback, name: str) -> None:
        self.due = due
        self.callback = callback
        self.name = name
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class ManualClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: float = START_TIME) -> None:
        self._now = start
        self.scheduled: List[ManualHandle] = []

    def now(self) -> float:
        return self._now

    def datetime(self) -> datetime:
        return datetime.fromtimestamp(self._now, tz=timezone.utc)

    def call_later(self, delay: float, callback, name: str = "") -> ManualHandle:
        handle = ManualHandle(self._now + max(0.0, delay), callback, name)
        self.scheduled.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self.scheduled if not h.cancelled]

    def tick(self, seconds: float) -> None:
        """Move time without running callbacks."""
        self._now += seconds

    async def advance(self, seconds: float) -> None:
        """Move time forward, running due callbacks in order."""
        target = self._now + seconds
        while True:
            due = sorted(
                (h for h in self.scheduled if not h.cancelled and h.due <= target),
                key=lambda h: h.due,
            )
            if not due:
                break
            handle = due[0]
            self.scheduled.remove(handle)
            self._now = max(self._now, handle.due)
            await handle.callback()
        self._now = target


# =============================================================================
# Store
# =============================================================================

class FlakyStore(MemoryConfigStore):
    """MemoryConfigStore that can be told to fail reads or writes."""

    def __init__(self, documents=None) -> None:
        super().__init__(documents)
        self.fail_load = False
        self.fail_save = False
        self.saves = 0

    async def load_config(self, guild_id: int):
        if self.fail_load:
            raise ConfigUnavailable(guild_id, "simulated outage")
        return await super().load_config(guild_id)

    async def save_config(self, guild_id: int, patch):
        self.saves += 1
        if self.fail_save:
            return None
        return await super().save_config(guild_id, patch)

    def event_types(self, guild_id: int) -> List[str]:
        return [event_type for event_type, _ in self.events.get(guild_id, [])]


# =============================================================================
# Platform
# =============================================================================

class FakePlatform:
    """Records every platform call. Operations in fail raise PlatformCallFailure."""

    def __init__(self) -> None:
        self.members: Dict[Tuple[int, int], MemberSnapshot] = {}
        self.roles: Dict[int, Dict[int, RoleRef]] = {}
        self.webhooks: Dict[int, Dict[int, WebhookRef]] = {}
        self.added: List[Tuple[int, int, int]] = []
        self.removed: List[Tuple[int, int, int]] = []
        self.dms: List[Tuple[int, str]] = []
        self.messages: List[Tuple[int, str]] = []
        self.deleted_webhooks: List[int] = []
        self.webhook_fetches = 0
        self.fail: set = set()
        self.fail_webhook_ids: set = set()

    def _check(self, operation: str) -> None:
        if operation in self.fail:
            raise PlatformCallFailure(operation, "simulated", status=500)

    # Setup helpers

    def add_guild_role(self, guild_id: int, role_id: int, name: str = "") -> None:
        self.roles.setdefault(guild_id, {})[role_id] = RoleRef(role_id, name or f"role-{role_id}")

    def add_member(
        self,
        guild_id: int,
        user_id: int,
        joined_at: Optional[datetime] = None,
        role_ids=(),
    ) -> MemberSnapshot:
        member = MemberSnapshot(user_id=user_id, joined_at=joined_at, role_ids=frozenset(role_ids))
        self.members[(guild_id, user_id)] = member
        return member

    def create_webhook(self, guild_id: int, webhook_id: int) -> None:
        self.webhooks.setdefault(guild_id, {})[webhook_id] = WebhookRef(webhook_id, name=f"hook-{webhook_id}")

    def roles_of(self, guild_id: int, user_id: int) -> frozenset:
        member = self.members.get((guild_id, user_id))
        return member.role_ids if member else frozenset()

    # Capabilities

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        self._check("fetch_member")
        return self.members.get((guild_id, user_id))

    async def fetch_role(self, guild_id: int, role_id: int) -> Optional[RoleRef]:
        self._check("fetch_role")
        return self.roles.get(guild_id, {}).get(role_id)

    async def add_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        self._check("add_role")
        self.added.append((guild_id, user_id, role_id))
        member = self.members.get((guild_id, user_id))
        if member:
            self.members[(guild_id, user_id)] = MemberSnapshot(
                user_id, member.joined_at, member.role_ids | {role_id})

    async def remove_role(self, guild_id: int, user_id: int, role_id: int, reason: str = "") -> None:
        self._check("remove_role")
        self.removed.append((guild_id, user_id, role_id))
        member = self.members.get((guild_id, user_id))
        if member:
            self.members[(guild_id, user_id)] = MemberSnapshot(
                user_id, member.joined_at, member.role_ids - {role_id})

    async def send_dm(self, user_id: int, content: str) -> None:
        self._check("send_dm")
        self.dms.append((user_id, content))

    async def send_message(self, channel_id: int, content: str) -> None:
        self._check("send_message")
        self.messages.append((channel_id, content))

    async def fetch_webhooks(self, guild_id: int) -> List[WebhookRef]:
        self._check("fetch_webhooks")
        self.webhook_fetches += 1
        return list(self.webhooks.get(guild_id, {}).values())

    async def delete_webhook(self, guild_id: int, webhook_id: int, reason: str = "") -> None:
        self._check("delete_webhook")
        if webhook_id in self.fail_webhook_ids:
            raise PlatformCallFailure("delete_webhook", "missing permissions", status=403)
        self.webhooks.get(guild_id, {}).pop(webhook_id, None)
        self.deleted_webhooks.append(webhook_id)


# =============================================================================
# Documents
# =============================================================================

def verification_doc(**security) -> dict:
    """A guild document with verification configured."""
    return {
        "modules": {
            "introduce": {
                "enabled": True,
                "roles": {
                    "verified_role_id": VERIFIED_ROLE_ID,
                    "pending_role_id": PENDING_ROLE_ID,
                },
                "security": security,
            }
        }
    }


def account_created(clock: ManualClock, days: float) -> datetime:
    return clock.datetime() - timedelta(days=days)


def applicant(clock: ManualClock, user_id: int, age_days: float = 400, guild_id: int = GUILD_ID) -> Applicant:
    return Applicant(guild_id=guild_id, user_id=user_id, created_at=account_created(clock, age_days))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    """Manually driven clock."""
    return ManualClock()


@pytest.fixture
def store():
    """In-memory config store with outage switches."""
    return FlakyStore()


@pytest.fixture
def platform():
    """Fake platform with the verification roles defined."""
    fake = FakePlatform()
    for role_id in (
        VERIFIED_ROLE_ID,
        PENDING_ROLE_ID,
        REMOVE_ROLE_ID,
        NEW_ACCOUNT_ROLE_ID,
        SUSPICIOUS_ROLE_ID,
        BYPASS_ROLE_ID,
    ):
        fake.add_guild_role(GUILD_ID, role_id)
    return fake


@pytest.fixture
def panic(store, clock):
    return PanicStateMachine(store, clock)


@pytest.fixture
def guard(panic):
    return ActionGuard(panic)


@pytest.fixture
def spike_detector(panic, store, clock):
    return SpikeDetector(panic, store, clock)


@pytest.fixture
def webhook_guard(guard, panic, store, platform, clock):
    return WebhookGuard(guard, panic, store, platform, clock)


@pytest.fixture
def gateway(store, platform, guard, panic, clock):
    store.documents[GUILD_ID] = verification_doc()
    return VerificationGateway(store, platform, guard, panic, clock)
