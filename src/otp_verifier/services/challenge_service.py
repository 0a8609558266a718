"""Challenge service — issue, resend and redeem one-time passcodes."""

from __future__ import annotations

import hmac
import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from otp_verifier.config import Settings
from otp_verifier.database.repository import ChallengeStore
from otp_verifier.models.challenge import Challenge
from otp_verifier.services.clock import Clock, SystemClock
from otp_verifier.services.code_generator import CodeGenerator
from otp_verifier.services.notification import NotificationSink
from otp_verifier.services.outcomes import (
    AttemptsExhausted,
    ChallengeStatus,
    DeliveryFailed,
    Expired,
    Invalid,
    InvalidFormat,
    InvalidIdentity,
    IssueOutcome,
    Issued,
    NotFound,
    ResendCooldown,
    StatusOutcome,
    Verified,
    VerifyOutcome,
)
from otp_verifier.services.verification_bridge import VerificationBridge

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_identity(identity: str) -> str:
    """Canonical store key for an email address: trimmed and lower-cased."""
    return identity.strip().lower()


def is_valid_identity(identity: str) -> bool:
    return bool(_EMAIL_RE.match(identity))


@dataclass(frozen=True)
class ChallengePolicy:
    """Tunable limits applied to every challenge."""

    code_length: int = 6
    ttl_minutes: int = 10
    max_attempts: int = 3
    resend_cooldown_seconds: int = 60

    @classmethod
    def from_settings(cls, settings: Settings) -> ChallengePolicy:
        return cls(
            code_length=settings.otp_code_length,
            ttl_minutes=settings.otp_ttl_minutes,
            max_attempts=settings.otp_max_attempts,
            resend_cooldown_seconds=settings.otp_resend_cooldown_seconds,
        )

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=self.ttl_minutes)


class ChallengeService:
    """Orchestrates the passcode lifecycle for email identities.

    Flow
    ----
    1. ``issue`` / ``resend`` store a fresh challenge (subject to the resend
       cooldown) and hand the code to the notification sink.
    2. ``verify`` redeems a code at most once.  Wrong guesses burn attempts;
       expiry, exhaustion and success all delete the challenge.
    3. ``status`` is a read-only diagnostic view for operators.

    Each read-modify-write runs under the store's per-identity lock.  The
    notification sink and verification bridge are called after the lock is
    released, once the store already reflects the outcome.
    """

    def __init__(
        self,
        store: ChallengeStore,
        notifier: NotificationSink,
        bridge: VerificationBridge,
        *,
        policy: ChallengePolicy | None = None,
        generator: CodeGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._bridge = bridge
        self._policy = policy or ChallengePolicy()
        self._generator = generator or CodeGenerator(self._policy.code_length)
        self._clock = clock or SystemClock()

    @property
    def policy(self) -> ChallengePolicy:
        return self._policy

    # ── Issuance ─────────────────────────────────────────

    async def issue(
        self, identity: str, metadata: dict[str, Any] | None = None
    ) -> IssueOutcome:
        """Issue a new passcode for *identity* unless the cooldown is active."""
        key = normalize_identity(identity)
        if not is_valid_identity(key):
            return InvalidIdentity(identity)

        fresh_metadata = dict(metadata or {})
        return await self._issue(
            key,
            metadata_for=lambda existing: fresh_metadata,
            display_name=fresh_metadata.get("name"),
        )

    async def resend(self, identity: str, name_hint: str | None = None) -> IssueOutcome:
        """Replace the passcode for *identity*, restarting the attempt budget.

        Metadata from the previous challenge is carried forward; without a
        previous challenge it falls back to ``{"name": name_hint}``.
        """
        key = normalize_identity(identity)
        if not is_valid_identity(key):
            return InvalidIdentity(identity)

        def carry_forward(existing: Challenge | None) -> dict[str, Any]:
            if existing is not None and existing.meta:
                return dict(existing.meta)
            return {"name": name_hint}

        return await self._issue(
            key, metadata_for=carry_forward, display_name=name_hint, resend=True
        )

    async def _issue(
        self,
        key: str,
        metadata_for: Callable[[Challenge | None], dict[str, Any]],
        display_name: str | None,
        resend: bool = False,
    ) -> IssueOutcome:
        async with self._store.lock(key):
            now = self._clock.now()
            existing = await self._store.get(key)
            if existing is not None:
                remaining = self._cooldown_remaining(existing, now)
                if remaining > 0:
                    logger.warning(
                        "Passcode cooldown active for %s, %ss remaining", key, remaining
                    )
                    return ResendCooldown(remaining_seconds=remaining)

            metadata = metadata_for(existing)
            code = self._generator.generate(self._policy.code_length)
            await self._store.upsert(
                key,
                Challenge(
                    identity=key,
                    code=code,
                    issued_at=now,
                    expires_at=now + self._policy.ttl,
                    attempts=0,
                    max_attempts=self._policy.max_attempts,
                    meta=metadata,
                ),
            )

        name = display_name or metadata.get("name")
        if not await self._deliver(key, code, name):
            logger.error("Failed to deliver passcode to %s", key)
            return DeliveryFailed(identity=key)

        logger.info("Passcode %s for %s", "resent" if resend else "issued", key)
        return Issued(identity=key, expires_in_seconds=self._policy.ttl_minutes * 60)

    def _cooldown_remaining(self, challenge: Challenge, now: datetime) -> int:
        cooldown = self._policy.resend_cooldown_seconds
        elapsed = (now - challenge.issued_at).total_seconds()
        if elapsed >= cooldown:
            return 0
        return min(cooldown, math.ceil(cooldown - elapsed))

    async def _deliver(self, key: str, code: str, name: str | None) -> bool:
        try:
            return bool(
                await self._notifier.send(key, code, self._policy.ttl_minutes, name=name)
            )
        except Exception:
            logger.exception("Notification sink raised while delivering to %s", key)
            return False

    # ── Verification ─────────────────────────────────────

    async def verify(self, identity: str, submitted_code: str) -> VerifyOutcome:
        """Redeem *submitted_code* for *identity*."""
        key = normalize_identity(identity)
        if not is_valid_identity(key):
            return InvalidIdentity(identity)
        if not self._is_well_formed(submitted_code):
            return InvalidFormat(expected_length=self._policy.code_length)

        async with self._store.lock(key):
            challenge = await self._store.get(key)
            if challenge is None:
                logger.warning("Verification attempt without a live passcode: %s", key)
                return NotFound()

            if challenge.is_expired(self._clock.now()):
                await self._store.delete(key)
                logger.warning("Expired passcode verification attempt: %s", key)
                return Expired()

            if challenge.attempts >= challenge.max_attempts:
                await self._store.delete(key)
                logger.warning("Attempt budget already spent for %s", key)
                return AttemptsExhausted()

            if not hmac.compare_digest(
                submitted_code.encode("ascii"), challenge.code.encode("ascii")
            ):
                return await self._record_failure(key, challenge.max_attempts)

            if not await self._store.delete(key):
                # Another worker redeemed it first.
                return NotFound()
            metadata = dict(challenge.meta or {})

        logger.info("Passcode verified for %s", key)
        await self._notify_verified(key, metadata)
        return Verified(identity=key, metadata=metadata)

    async def _record_failure(self, key: str, max_attempts: int) -> VerifyOutcome:
        attempts = await self._store.increment_attempts(key)
        if attempts is None:
            return NotFound()

        attempts_left = max_attempts - attempts
        logger.warning(
            "Invalid passcode for %s, %d attempt(s) remaining", key, max(0, attempts_left)
        )
        if attempts_left <= 0:
            await self._store.delete(key)
            return AttemptsExhausted()
        return Invalid(attempts_left=attempts_left)

    def _is_well_formed(self, code: str) -> bool:
        return (
            len(code) == self._policy.code_length and code.isascii() and code.isdigit()
        )

    async def _notify_verified(self, key: str, metadata: dict[str, Any]) -> None:
        try:
            await self._bridge.on_verified(key, metadata)
        except Exception:
            logger.exception("Verification bridge failed for %s", key)

    # ── Diagnostics ──────────────────────────────────────

    async def status(self, identity: str) -> StatusOutcome:
        """Read-only snapshot of the live challenge, passcode included."""
        key = normalize_identity(identity)
        if not is_valid_identity(key):
            return InvalidIdentity(identity)

        challenge = await self._store.get(key)
        if challenge is None:
            return NotFound()

        remaining = (challenge.expires_at - self._clock.now()).total_seconds()
        return ChallengeStatus(
            identity=key,
            code=challenge.code,
            issued_at=challenge.issued_at,
            expires_at=challenge.expires_at,
            expires_in_seconds=max(0, math.ceil(remaining)),
            attempts=challenge.attempts,
            max_attempts=challenge.max_attempts,
            metadata=dict(challenge.meta or {}),
        )
