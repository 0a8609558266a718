"""Repositories — data access layer for challenges and accounts."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from otp_verifier.models.account import Account
from otp_verifier.models.challenge import Challenge
from otp_verifier.services.locks import KeyedLock

logger = logging.getLogger(__name__)


class ChallengeStore:
    """Keyed store of live challenges, one row per identity.

    Every call runs in its own short transaction.  Callers that need a
    read-modify-write sequence on one identity wrap it in :meth:`lock`;
    identities never contend with each other.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._locks = KeyedLock()

    def lock(self, identity: str) -> AbstractAsyncContextManager[None]:
        """Exclusive access to *identity* for the duration of the block."""
        return self._locks.hold(identity)

    async def upsert(self, identity: str, challenge: Challenge) -> Challenge:
        """Replace whatever challenge *identity* had with *challenge*."""
        challenge.identity = identity
        async with self._session_factory() as session, session.begin():
            stored = await session.merge(challenge)
        return stored

    async def get(self, identity: str) -> Challenge | None:
        async with self._session_factory() as session:
            return await session.get(Challenge, identity)

    async def delete(self, identity: str) -> bool:
        """Remove the challenge for *identity*; ``True`` if one existed."""
        stmt = delete(Challenge).where(Challenge.identity == identity)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                stmt, execution_options={"synchronize_session": False}
            )
        return result.rowcount > 0

    async def increment_attempts(self, identity: str) -> int | None:
        """Bump the failed-attempt counter and return its new value.

        Returns ``None`` when the challenge vanished in the meantime.
        """
        stmt = (
            update(Challenge)
            .where(Challenge.identity == identity)
            .values(attempts=Challenge.attempts + 1)
            .returning(Challenge.attempts)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                stmt, execution_options={"synchronize_session": False}
            )
            return result.scalar_one_or_none()

    async def sweep_expired(self, now: datetime) -> int:
        """Delete every challenge whose ``expires_at`` lies before *now*."""
        stmt = delete(Challenge).where(Challenge.expires_at < now)
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                stmt, execution_options={"synchronize_session": False}
            )
        return result.rowcount or 0


class AccountRepository:
    """Encapsulates all database queries related to accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> Account | None:
        """Look up an account by its (already normalised) email address."""
        stmt = select(Account).where(Account.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_verified(self, email: str, when: datetime) -> bool:
        """Flag the account as verified.

        Returns ``True`` only if an unverified account was updated; a missing
        or already-verified account is left untouched.
        """
        account = await self.find_by_email(email)
        if account is None or account.email_verified:
            return False
        account.email_verified = True
        account.verified_at = when
        logger.info("Account %s marked as verified", email)
        return True
