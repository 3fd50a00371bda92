"""
Warden - Verification Gateway
=============================

Admission pipeline for new members.

DESIGN:
    process() runs the checks in a fixed order and stops at the first
    one that applies:

        1. gateway lock                    GATEWAY_LOCKED
        2. already introduced              ALREADY_VERIFIED
        3. bypass role                     BYPASSED
        4. account age                     BLOCKED_ACCOUNT_AGE
        5. join age                        BLOCKED_JOIN_AGE
        6. per-user rate limit (60s)       BLOCKED_RATE_LIMIT
        7. guild-wide raid window (60s)    GATEWAY_LOCKED (auto-lock)
        8. role transitions                BLOCKED_PANIC if the guard denies
        9. trust score
       10. record introduction             SUCCESS

    Every role mutation is checked against the ActionGuard before any of
    them runs, so a panic denial never leaves a member half-verified.
    The verified role is structurally required: if it is not configured,
    cannot be found or cannot be granted the result is ERROR. Risk marker
    roles are granted, then stripped with the pending and remove roles
    once the verified role is in place. Those steps, DMs and listeners
    are best-effort.

    The gateway lock is separate from panic. It lives in memory, is
    mirrored under modules.gateway_v4.slots.lock, and is lifted by a
    cancelable timer that is replaced whenever a new lock is issued.
    When memory holds no lock the mirror is consulted, so a lock issued
    before a restart still holds.
"""

import math
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from warden.core.clock import Clock
from warden.core.config_store import ConfigStore, Document, build_patch, get_path
from warden.core.constants import (
    NEW_ACCOUNT_DAYS,
    SECONDS_PER_DAY,
    SECONDS_PER_MINUTE,
    VERIFY_WINDOW_SECONDS,
)
from warden.core.errors import ConfigUnavailable, NotConfigured, PlatformCallFailure
from warden.core.guild_settings import DEFAULT_FAILURE_MESSAGE, VerificationSettings
from warden.core.logger import logger
from warden.core.platform import MemberSnapshot, PlatformActions
from warden.security.action_guard import ActionGuard, ActionKind
from warden.security.panic import PanicLevel, PanicStateMachine
from warden.security.sliding_window import SlidingWindowCounter

from .constants import (
    INTRODUCED_USERS_PATH,
    LOCK_PATH,
    MANUAL_LOCK_REASON,
    RAID_LOCK_REASON,
    REASON_CONFIG_UNAVAILABLE,
    REASON_INTERNAL,
    REASON_NOT_CONFIGURED,
    REASON_ROLE_ASSIGN_FAILED,
    STATS_FIELDS,
    STATS_PATH,
    TODAY_BLOCKED,
    TODAY_VERIFIED,
    TOTAL_BLOCKED,
    TOTAL_VERIFIED,
)
from .models import (
    Applicant,
    GatewayLock,
    TrustScore,
    VerificationOutcome,
    VerificationResult,
)
from .trust_score import calculate_trust_score


VerifiedListener = Callable[[Applicant, VerificationResult], Awaitable[None]]


def _introduced_ids(doc: Document) -> List[int]:
    raw = get_path(doc, INTRODUCED_USERS_PATH, [])
    if not isinstance(raw, list):
        return []
    ids = []
    for item in raw:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids


def _epoch(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


# =============================================================================
# Verification Gateway
# =============================================================================

class VerificationGateway:
    """Owns admission decisions, gateway locks and verification stats."""

    def __init__(
        self,
        store: ConfigStore,
        platform: PlatformActions,
        guard: ActionGuard,
        panic: PanicStateMachine,
        clock: Clock,
    ) -> None:
        self.store = store
        self.platform = platform
        self.guard = guard
        self.panic = panic
        self.clock = clock

        self._user_attempts = SlidingWindowCounter(VERIFY_WINDOW_SECONDS, clock)
        self._guild_attempts = SlidingWindowCounter(VERIFY_WINDOW_SECONDS, clock)
        self._locks: Dict[int, GatewayLock] = {}
        # guild_id -> locked_until of the last lock lifted in this process
        self._released: Dict[int, float] = {}
        self._listeners: List[VerifiedListener] = []

    def add_listener(self, callback: VerifiedListener) -> None:
        """Register a coroutine called after every SUCCESS or BYPASSED."""
        self._listeners.append(callback)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def process(self, applicant: Applicant, mode: str = "button") -> VerificationResult:
        """
        Run one admission attempt. Never raises.

        Args:
            applicant: Who is asking to be admitted.
            mode: What triggered the attempt (button, reaction, trigger).
        """
        try:
            result = await self._process(applicant)
        except Exception as e:
            logger.error("Verification Failed", [
                ("Guild ID", str(applicant.guild_id)),
                ("User ID", str(applicant.user_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            result = VerificationResult(
                VerificationOutcome.ERROR, DEFAULT_FAILURE_MESSAGE, reason=REASON_INTERNAL)

        items = [
            ("Guild ID", str(applicant.guild_id)),
            ("User ID", str(applicant.user_id)),
            ("Mode", mode),
            ("Outcome", result.outcome.value),
        ]
        if result.reason:
            items.append(("Reason", result.reason))
        if result.trust:
            items.append(("Trust", f"{result.trust.score} ({result.trust.risk.value})"))
        logger.security("Verification Outcome", items, emoji="🚪")

        if result.outcome.admitted:
            await self._after_admission(applicant, result)
        return result

    async def _process(self, applicant: Applicant) -> VerificationResult:
        guild_id = applicant.guild_id
        user_id = applicant.user_id

        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Verification Config Unavailable", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return VerificationResult(
                VerificationOutcome.ERROR, DEFAULT_FAILURE_MESSAGE, reason=REASON_CONFIG_UNAVAILABLE)

        settings = VerificationSettings.from_document(doc)
        now = self.clock.now()

        def fail(outcome: VerificationOutcome, reason: Optional[str] = None) -> VerificationResult:
            return VerificationResult(outcome, settings.failure_message, reason=reason)

        # 1. Gateway lock
        if not self.is_gateway_locked(guild_id):
            await self._hydrate_lock(guild_id, doc)
        if self.is_gateway_locked(guild_id):
            await self._bump_blocked(guild_id)
            return fail(VerificationOutcome.GATEWAY_LOCKED)

        # 2. Already introduced
        if user_id in _introduced_ids(doc):
            return VerificationResult(VerificationOutcome.ALREADY_VERIFIED, settings.already_message)

        try:
            # 3. Bypass roles
            member = await self._fetch_member(guild_id, user_id)
            if member and settings.bypass_role_ids and member.has_any_role(settings.bypass_role_ids):
                verified_role_id = await self._require_verified_role(guild_id, settings)
                if verified_role_id not in member.role_ids:
                    if not self.guard.assert_allowed(guild_id, ActionKind.GATEWAY_ROLE_ASSIGN):
                        return fail(VerificationOutcome.BLOCKED_PANIC)
                    if not await self._grant(guild_id, user_id, verified_role_id, "Verification bypass"):
                        return fail(VerificationOutcome.ERROR, REASON_ROLE_ASSIGN_FAILED)
                await self._record_introduction(guild_id, user_id, None)
                return VerificationResult(VerificationOutcome.BYPASSED, settings.success_message)

            # 4. Account age
            created = _epoch(applicant.created_at)
            account_age_days = math.floor((now - created) / SECONDS_PER_DAY) if created is not None else 0
            if account_age_days < settings.min_account_age_days:
                await self._bump_blocked(guild_id)
                return fail(VerificationOutcome.BLOCKED_ACCOUNT_AGE)

            # 5. Join age
            joined = _epoch(member.joined_at) if member else None
            join_age_minutes = (now - joined) / SECONDS_PER_MINUTE if joined is not None else math.inf
            if join_age_minutes < settings.min_join_minutes:
                await self._bump_blocked(guild_id)
                return fail(VerificationOutcome.BLOCKED_JOIN_AGE)

            # 6. Per-user rate limit
            attempts = self._user_attempts.record((guild_id, user_id))
            if attempts > settings.rate_limit_per_minute:
                self._guild_attempts.record(guild_id)
                await self._bump_blocked(guild_id)
                return fail(VerificationOutcome.BLOCKED_RATE_LIMIT)

            # 7. Raid window
            guild_count = self._guild_attempts.record(guild_id)
            if settings.auto_lock_on_raid and guild_count > settings.raid_threshold_per_minute:
                await self._handle_raid(guild_id, guild_count, settings)
                return fail(VerificationOutcome.GATEWAY_LOCKED)

            # 8. Role transitions
            verified_role_id = await self._require_verified_role(guild_id, settings)
            grants = self._flag_roles(settings, member, account_age_days)
            removals = self._transient_roles(settings, member, grants)

            required = [ActionKind.GATEWAY_ROLE_ASSIGN]
            if removals:
                required.append(ActionKind.ROLE_MODIFY)
            if not self.guard.allowed_all(guild_id, *required):
                return fail(VerificationOutcome.BLOCKED_PANIC)

            for role_id in grants:
                await self._grant(guild_id, user_id, role_id, "Verification risk marker")

            if not member or verified_role_id not in member.role_ids:
                if not await self._grant(guild_id, user_id, verified_role_id, "Verified"):
                    return fail(VerificationOutcome.ERROR, REASON_ROLE_ASSIGN_FAILED)

            for role_id in removals:
                await self._revoke(guild_id, user_id, role_id, "Verified")

        except NotConfigured as e:
            logger.warning("Verification Not Configured", [
                ("Guild ID", str(guild_id)),
                ("Setting", e.setting),
            ])
            return fail(VerificationOutcome.ERROR, REASON_NOT_CONFIGURED)

        # 9. Trust score
        trust = calculate_trust_score(
            account_age_days,
            attempts=attempts,
            verification_seconds=(now - joined) if joined is not None else 0,
        )

        # 10. Record
        await self._record_introduction(guild_id, user_id, trust)
        return VerificationResult(VerificationOutcome.SUCCESS, settings.success_message, trust=trust)

    # =========================================================================
    # Pipeline Helpers
    # =========================================================================

    async def _fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberSnapshot]:
        try:
            return await self.platform.fetch_member(guild_id, user_id)
        except PlatformCallFailure as e:
            logger.warning("Member Fetch Failed", [
                ("Guild ID", str(guild_id)),
                ("User ID", str(user_id)),
                ("Error", str(e)[:100]),
            ])
            return None

    async def _require_verified_role(self, guild_id: int, settings: VerificationSettings) -> int:
        """
        Resolve the verified role.

        Raises:
            NotConfigured: If it is unset, missing or the lookup fails.
        """
        role_id = settings.verified_role_id
        if role_id is None:
            raise NotConfigured("verified_role_id")
        try:
            role = await self.platform.fetch_role(guild_id, role_id)
        except PlatformCallFailure as e:
            logger.warning("Verified Role Lookup Failed", [
                ("Guild ID", str(guild_id)),
                ("Role ID", str(role_id)),
                ("Error", str(e)[:100]),
            ])
            raise NotConfigured("verified_role_id") from e
        if role is None:
            raise NotConfigured("verified_role_id")
        return role_id

    def _flag_roles(
        self,
        settings: VerificationSettings,
        member: Optional[MemberSnapshot],
        account_age_days: int,
    ) -> List[int]:
        held = member.role_ids if member else frozenset()
        grants = []
        if settings.new_account_role_id and account_age_days < NEW_ACCOUNT_DAYS:
            grants.append(settings.new_account_role_id)
        if settings.suspicious_role_id and account_age_days < settings.min_account_age_days * 2:
            grants.append(settings.suspicious_role_id)
        return [role_id for role_id in grants if role_id not in held]

    def _transient_roles(
        self,
        settings: VerificationSettings,
        member: Optional[MemberSnapshot],
        granted: List[int],
    ) -> List[int]:
        """
        Roles to strip once the member is verified.

        The pending and remove roles go, and so do the risk markers,
        including any granted earlier in this same run. With no member
        snapshot every configured role is a candidate.
        """
        candidates = [
            settings.pending_role_id,
            settings.remove_role_id,
            settings.new_account_role_id,
            settings.suspicious_role_id,
        ]
        held = (member.role_ids if member else frozenset()) | set(granted)
        return [
            role_id for role_id in candidates
            if role_id and (member is None or role_id in held)
        ]

    async def _grant(self, guild_id: int, user_id: int, role_id: int, reason: str) -> bool:
        try:
            await self.platform.add_role(guild_id, user_id, role_id, reason=reason)
            return True
        except PlatformCallFailure as e:
            logger.warning("Role Add Failed", [
                ("Guild ID", str(guild_id)),
                ("User ID", str(user_id)),
                ("Role ID", str(role_id)),
                ("Error", str(e)[:100]),
            ])
            return False

    async def _revoke(self, guild_id: int, user_id: int, role_id: int, reason: str) -> bool:
        try:
            await self.platform.remove_role(guild_id, user_id, role_id, reason=reason)
            return True
        except PlatformCallFailure as e:
            logger.warning("Role Remove Failed", [
                ("Guild ID", str(guild_id)),
                ("User ID", str(user_id)),
                ("Role ID", str(role_id)),
                ("Error", str(e)[:100]),
            ])
            return False

    async def _handle_raid(self, guild_id: int, count: int, settings: VerificationSettings) -> None:
        logger.security("Verification Raid Detected", [
            ("Guild ID", str(guild_id)),
            ("Attempts", f"{count} in {VERIFY_WINDOW_SECONDS}s"),
            ("Threshold", str(settings.raid_threshold_per_minute)),
            ("Lock", f"{settings.lock_duration_minutes} min"),
        ], emoji="🚨")

        await self.lock_gateway(guild_id, settings.lock_duration_minutes, RAID_LOCK_REASON)
        if settings.panic_on_raid:
            await self.panic.escalate(
                guild_id,
                PanicLevel.LIGHT,
                settings.lock_duration_minutes,
                reason=f"verification raid ({count} attempts)",
            )

    async def _record_introduction(
        self,
        guild_id: int,
        user_id: int,
        trust: Optional[TrustScore],
    ) -> None:
        """Add the user to introduced_users, store the score and count the admission."""
        calculated_at = self.clock.now()

        def builder(doc: Document) -> Optional[Document]:
            introduced = _introduced_ids(doc)
            if user_id in introduced:
                return None
            introduce: Dict[str, Any] = {"introduced_users": introduced + [user_id]}
            if trust is not None:
                introduce["member_scores"] = {str(user_id): trust.to_record(calculated_at)}
            stats = get_path(doc, STATS_PATH, {})
            stats = stats if isinstance(stats, dict) else {}
            introduce["stats"] = {
                TOTAL_VERIFIED: int(stats.get(TOTAL_VERIFIED) or 0) + 1,
                TODAY_VERIFIED: int(stats.get(TODAY_VERIFIED) or 0) + 1,
            }
            return {"modules": {"introduce": introduce}}

        await self.store.mutate(guild_id, builder)

    async def _bump_blocked(self, guild_id: int) -> None:
        await self.store.increment(guild_id, STATS_PATH, {TOTAL_BLOCKED: 1, TODAY_BLOCKED: 1})

    async def _after_admission(self, applicant: Applicant, result: VerificationResult) -> None:
        try:
            doc = await self.store.load_config(applicant.guild_id)
            settings = VerificationSettings.from_document(doc)
        except ConfigUnavailable:
            settings = VerificationSettings()

        if settings.welcome_dm:
            try:
                await self.platform.send_dm(applicant.user_id, settings.welcome_dm)
            except PlatformCallFailure as e:
                logger.debug("Welcome DM Failed", [
                    ("User ID", str(applicant.user_id)),
                    ("Error", str(e)[:100]),
                ])

        for listener in self._listeners:
            try:
                await listener(applicant, result)
            except Exception as e:
                logger.error("Verification Listener Failed", [
                    ("Guild ID", str(applicant.guild_id)),
                    ("Listener", getattr(listener, "__name__", repr(listener))),
                    ("Error", str(e)[:100]),
                    ("Type", type(e).__name__),
                ])

    async def load_settings(self, guild_id: int) -> Optional[VerificationSettings]:
        """Current verification settings, or None if the config cannot be read."""
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Verification Settings Unavailable", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return None
        return VerificationSettings.from_document(doc)

    # =========================================================================
    # Member Join
    # =========================================================================

    async def on_member_join(self, guild_id: int, user_id: int) -> None:
        """
        Prepare a newly joined member for verification.

        Gives the pending role and DMs the instructions. A returning member
        who was already introduced gets the verified role back instead.
        """
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable as e:
            logger.warning("Member Join Skipped", [
                ("Guild ID", str(guild_id)),
                ("Reason", str(e)[:100]),
            ])
            return

        settings = VerificationSettings.from_document(doc)
        if not settings.enabled:
            return

        returning = user_id in _introduced_ids(doc)
        role_id = settings.verified_role_id if returning else settings.pending_role_id

        if role_id and self.guard.assert_allowed(guild_id, ActionKind.GATEWAY_ROLE_ASSIGN):
            reason = "Returning verified member" if returning else "Awaiting verification"
            await self._grant(guild_id, user_id, role_id, reason)

        if settings.instructions_dm and not returning:
            try:
                await self.platform.send_dm(user_id, settings.instructions_dm)
            except PlatformCallFailure as e:
                logger.debug("Instructions DM Failed", [
                    ("User ID", str(user_id)),
                    ("Error", str(e)[:100]),
                ])

    # =========================================================================
    # Gateway Lock
    # =========================================================================

    def is_gateway_locked(self, guild_id: int) -> bool:
        lock = self._locks.get(guild_id)
        if lock is None:
            return False
        if lock.is_active(self.clock.now()):
            return True
        self._locks.pop(guild_id, None)
        return False

    def get_lock(self, guild_id: int) -> Optional[GatewayLock]:
        return self._locks.get(guild_id) if self.is_gateway_locked(guild_id) else None

    async def lock_gateway(
        self,
        guild_id: int,
        minutes: float,
        reason: str = MANUAL_LOCK_REASON,
    ) -> GatewayLock:
        """
        Lock the gateway for minutes (at least one).

        Any pending unlock timer is cancelled and replaced.
        """
        minutes = max(1.0, float(minutes))
        return await self._set_lock(guild_id, self.clock.now() + minutes * SECONDS_PER_MINUTE, reason)

    async def _set_lock(self, guild_id: int, locked_until: float, reason: str) -> GatewayLock:
        previous = self._locks.get(guild_id)
        if previous and previous.handle:
            previous.handle.cancel()

        delay = max(0.0, locked_until - self.clock.now())
        handle = self.clock.call_later(
            delay,
            lambda: self._auto_unlock(guild_id, locked_until),
            name=f"gateway-unlock-{guild_id}",
        )
        lock = GatewayLock(guild_id=guild_id, locked_until=locked_until, reason=reason, handle=handle)
        self._locks[guild_id] = lock

        logger.security("Gateway Locked", [
            ("Guild ID", str(guild_id)),
            ("Reason", reason),
            ("Duration", f"{int(delay)}s"),
            ("Replaced", "Yes" if previous else "No"),
        ], emoji="🔒")

        await self._persist_lock(guild_id, {
            "gateway_locked": True,
            "lock_until": locked_until,
            "lock_reason": reason,
        })
        await self.store.record_event(guild_id, "gateway_locked", {
            "until": locked_until,
            "reason": reason,
        })
        return lock

    async def _auto_unlock(self, guild_id: int, locked_until: float) -> None:
        lock = self._locks.get(guild_id)
        if lock is None or lock.locked_until != locked_until:
            return
        # The timer is the running task; it must not cancel itself.
        lock.handle = None
        await self.unlock_gateway(guild_id, reason="Lock expired")

    async def unlock_gateway(self, guild_id: int, reason: str = "Manual unlock") -> bool:
        """
        Lift the gateway lock immediately.

        Returns:
            True if a lock was held.
        """
        lock = self._locks.pop(guild_id, None)
        if lock and lock.handle:
            lock.handle.cancel()
        if lock:
            self._released[guild_id] = lock.locked_until

        logger.security("Gateway Unlocked", [
            ("Guild ID", str(guild_id)),
            ("Reason", reason),
            ("Was Locked", "Yes" if lock else "No"),
        ], emoji="🔓")

        await self._persist_lock(guild_id, {
            "gateway_locked": False,
            "lock_until": None,
            "lock_reason": None,
        })
        return lock is not None

    async def _persist_lock(self, guild_id: int, mirror: Dict[str, Any]) -> None:
        try:
            result = await self.store.save_config(guild_id, build_patch(LOCK_PATH, mirror))
        except Exception as e:
            logger.warning("Gateway Lock Mirror Not Saved", [
                ("Guild ID", str(guild_id)),
                ("Error", str(e)[:100]),
                ("Type", type(e).__name__),
            ])
            return
        if result is None:
            logger.warning("Gateway Lock Mirror Not Saved", [
                ("Guild ID", str(guild_id)),
                ("Reason", "Store returned no document"),
            ])

    async def restore_lock(self, guild_id: int) -> Optional[GatewayLock]:
        """Re-arm a persisted lock after a restart, or clear a stale one."""
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable:
            return None
        return await self._hydrate_lock(guild_id, doc)

    async def _hydrate_lock(self, guild_id: int, doc: Document) -> Optional[GatewayLock]:
        mirror = get_path(doc, LOCK_PATH, {})
        if not isinstance(mirror, dict) or not mirror.get("gateway_locked"):
            return None

        try:
            locked_until = float(mirror.get("lock_until"))
        except (TypeError, ValueError):
            locked_until = 0.0

        if self._released.get(guild_id) == locked_until:
            return None

        if locked_until <= self.clock.now():
            await self._persist_lock(guild_id, {
                "gateway_locked": False,
                "lock_until": None,
                "lock_reason": None,
            })
            return None

        return await self._set_lock(guild_id, locked_until, mirror.get("lock_reason") or MANUAL_LOCK_REASON)

    # =========================================================================
    # Stats
    # =========================================================================

    async def get_stats(self, guild_id: int) -> Dict[str, int]:
        try:
            doc = await self.store.load_config(guild_id)
        except ConfigUnavailable:
            doc = {}
        stats = get_path(doc, STATS_PATH, {})
        stats = stats if isinstance(stats, dict) else {}
        return {name: int(stats.get(name) or 0) for name in STATS_FIELDS}

    async def reset_daily_stats(self, guild_id: int) -> None:
        """Zero the today_* counters, keeping the totals."""
        reset_at = self.clock.now()

        def builder(doc: Document) -> Document:
            return build_patch(STATS_PATH, {
                TODAY_VERIFIED: 0,
                TODAY_BLOCKED: 0,
                "last_reset": reset_at,
            })

        await self.store.mutate(guild_id, builder)

    def evict_idle(self, idle_seconds: float) -> int:
        return (
            self._user_attempts.evict_idle(idle_seconds)
            + self._guild_attempts.evict_idle(idle_seconds)
        )


__all__ = ["VerificationGateway", "VerifiedListener"]
