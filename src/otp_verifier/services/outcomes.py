"""Result variants returned by the challenge service.

Every expected outcome of issuing or redeeming a passcode is a value, not
an exception.  Only genuine faults (store unavailable, entropy failure)
propagate as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


# ── Validation ───────────────────────────────────────────

@dataclass(frozen=True)
class InvalidIdentity:
    identity: str


@dataclass(frozen=True)
class InvalidFormat:
    expected_length: int


# ── Issuance ─────────────────────────────────────────────

@dataclass(frozen=True)
class Issued:
    identity: str
    expires_in_seconds: int


@dataclass(frozen=True)
class ResendCooldown:
    remaining_seconds: int


@dataclass(frozen=True)
class DeliveryFailed:
    """The challenge is stored but the notification did not go out."""

    identity: str


# ── Verification ─────────────────────────────────────────

@dataclass(frozen=True)
class Verified:
    identity: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Invalid:
    attempts_left: int


@dataclass(frozen=True)
class Expired:
    pass


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class AttemptsExhausted:
    pass


# ── Diagnostics ──────────────────────────────────────────

@dataclass(frozen=True)
class ChallengeStatus:
    identity: str
    code: str
    issued_at: datetime
    expires_at: datetime
    expires_in_seconds: int
    attempts: int
    max_attempts: int
    metadata: dict[str, Any] = field(default_factory=dict)
    exists: bool = True

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)


IssueOutcome = Issued | ResendCooldown | DeliveryFailed | InvalidIdentity
VerifyOutcome = (
    Verified
    | Invalid
    | Expired
    | NotFound
    | AttemptsExhausted
    | InvalidIdentity
    | InvalidFormat
)
StatusOutcome = ChallengeStatus | NotFound | InvalidIdentity
