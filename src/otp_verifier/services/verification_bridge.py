"""Verification bridges — tell the account system that an identity is verified.

The passcode has already been consumed by the time a bridge runs, so a
bridge failure is logged by the caller and never undoes the verification.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_verifier.config import Settings
from otp_verifier.database.repository import AccountRepository
from otp_verifier.services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class VerificationBridge(Protocol):
    async def on_verified(self, identity: str, metadata: dict[str, Any]) -> None:
        """React to a successful verification of *identity*."""


class AccountVerificationBridge:
    """Flips ``email_verified`` on the matching row of the local accounts table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    async def on_verified(self, identity: str, metadata: dict[str, Any]) -> None:
        async with self._session_factory() as session, session.begin():
            repo = AccountRepository(session)
            updated = await repo.mark_verified(identity, self._clock.now())
        if not updated:
            logger.debug("No unverified account for %s, nothing to update", identity)


class HttpVerificationBridge:
    """Reports verifications to an external account API over HTTP.

    In production ``base_url`` points at the account service; the request
    body is ``{"email": ..., "metadata": {...}}``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def on_verified(self, identity: str, metadata: dict[str, Any]) -> None:
        url = f"{self._base_url}/accounts/verify"
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            resp = await client.post(url, json={"email": identity, "metadata": metadata})
        resp.raise_for_status()
        logger.info("Account API acknowledged verification of %s", identity)


def build_verification_bridge(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    clock: Clock | None = None,
) -> VerificationBridge:
    if settings.account_api_base_url:
        return HttpVerificationBridge(settings.account_api_base_url)
    return AccountVerificationBridge(session_factory, clock)
