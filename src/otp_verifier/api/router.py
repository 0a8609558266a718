"""Passcode HTTP API.

Endpoints
---------
POST /otp/send            → issue a passcode for an email address
POST /otp/resend          → replace the passcode, keeping its metadata
POST /otp/verify          → redeem a passcode
GET  /otp/status/{email}  → operator-only diagnostic view
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from otp_verifier.config import Settings
from otp_verifier.services.challenge_service import ChallengeService
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
    Verified,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])


# ── Request models ───────────────────────────────────────

class SendOTPRequest(BaseModel):
    email: str
    name: str | None = None
    purpose: str = "verification"


class ResendOTPRequest(BaseModel):
    email: str
    name: str | None = None


class VerifyOTPRequest(BaseModel):
    email: str
    otp: str


# ── Dependencies ─────────────────────────────────────────

def get_challenge_service(request: Request) -> ChallengeService:
    return request.app.state.challenge_service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_operator(
    settings: Settings = Depends(get_settings),
    x_operator_token: str | None = Header(default=None),
) -> None:
    """Gate diagnostics behind an explicit operator credential.

    The endpoint does not exist unless it is switched on *and* a token is
    configured; with both in place the caller must present that token.
    """
    if not settings.status_enabled or not settings.operator_token:
        raise HTTPException(status_code=404, detail="Not found")
    if x_operator_token is None or not secrets.compare_digest(
        x_operator_token.encode(), settings.operator_token.encode()
    ):
        logger.warning("Rejected status request with missing or bad operator token")
        raise HTTPException(status_code=401, detail="Operator token required")


# ── Response helpers ─────────────────────────────────────

def _failure(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message, **extra},
    )


def _issue_response(outcome: IssueOutcome, success_message: str) -> JSONResponse:
    if isinstance(outcome, Issued):
        return JSONResponse(
            content={
                "success": True,
                "message": success_message,
                "expiresIn": outcome.expires_in_seconds,
            }
        )
    if isinstance(outcome, ResendCooldown):
        return _failure(
            429,
            "RESEND_COOLDOWN",
            f"Please wait {outcome.remaining_seconds} seconds before requesting a new OTP.",
            remainingSeconds=outcome.remaining_seconds,
        )
    if isinstance(outcome, DeliveryFailed):
        return _failure(
            500, "EMAIL_SEND_FAILED", "Failed to send OTP email. Please try again."
        )
    return _failure(400, "INVALID_EMAIL", "Please provide a valid email address.")


# ── Endpoints ────────────────────────────────────────────

@router.post("/send")
async def send_otp(
    body: SendOTPRequest, service: ChallengeService = Depends(get_challenge_service)
) -> JSONResponse:
    """Issue a passcode and email it to the caller."""
    outcome = await service.issue(
        body.email, metadata={"name": body.name, "purpose": body.purpose}
    )
    return _issue_response(outcome, "OTP sent successfully to your email.")


@router.post("/resend")
async def resend_otp(
    body: ResendOTPRequest, service: ChallengeService = Depends(get_challenge_service)
) -> JSONResponse:
    """Replace the caller's passcode with a fresh one."""
    outcome = await service.resend(body.email, name_hint=body.name)
    return _issue_response(outcome, "New OTP sent successfully to your email.")


@router.post("/verify")
async def verify_otp(
    body: VerifyOTPRequest, service: ChallengeService = Depends(get_challenge_service)
) -> JSONResponse:
    """Redeem a passcode."""
    outcome = await service.verify(body.email, body.otp)

    if isinstance(outcome, Verified):
        return JSONResponse(
            content={
                "success": True,
                "message": "OTP verified successfully.",
                "data": {"emailVerified": True, "metadata": outcome.metadata},
            }
        )
    if isinstance(outcome, Invalid):
        plural = "s" if outcome.attempts_left > 1 else ""
        return _failure(
            400,
            "INVALID_OTP",
            f"Invalid OTP. {outcome.attempts_left} attempt{plural} remaining.",
            attemptsLeft=outcome.attempts_left,
        )
    if isinstance(outcome, AttemptsExhausted):
        return _failure(
            400,
            "MAX_ATTEMPTS_EXCEEDED",
            "Maximum attempts exceeded. Please request a new OTP.",
            attemptsLeft=0,
        )
    if isinstance(outcome, Expired):
        return _failure(400, "OTP_EXPIRED", "OTP has expired. Please request a new one.")
    if isinstance(outcome, NotFound):
        return _failure(
            400, "NO_OTP_FOUND", "No OTP found for this email. Please request a new one."
        )
    if isinstance(outcome, InvalidFormat):
        return _failure(
            400,
            "INVALID_OTP_FORMAT",
            f"OTP must be a {outcome.expected_length}-digit number.",
        )
    return _failure(400, "INVALID_EMAIL", "Please provide a valid email address.")


@router.get("/status/{email}", dependencies=[Depends(require_operator)])
async def challenge_status(
    email: str, service: ChallengeService = Depends(get_challenge_service)
) -> JSONResponse:
    """Expose the live challenge, passcode included, to an operator."""
    outcome = await service.status(email)

    if isinstance(outcome, InvalidIdentity):
        return _failure(400, "INVALID_EMAIL", "Please provide a valid email address.")
    if not isinstance(outcome, ChallengeStatus):
        return JSONResponse(
            content={"exists": False, "message": "No OTP found for this email"}
        )

    return JSONResponse(
        content={
            "exists": True,
            "email": outcome.identity,
            "otp": outcome.code,
            "issuedAt": outcome.issued_at.isoformat(),
            "expiresAt": outcome.expires_at.isoformat(),
            "expiresIn": outcome.expires_in_seconds,
            "attempts": outcome.attempts,
            "maxAttempts": outcome.max_attempts,
            "attemptsRemaining": outcome.attempts_remaining,
            "metadata": outcome.metadata,
        }
    )
