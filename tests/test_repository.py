"""Tests for the ChallengeStore and AccountRepository."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from otp_verifier.database.repository import AccountRepository
from otp_verifier.models.account import Account
from otp_verifier.models.challenge import Challenge

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _challenge(identity: str, code: str = "123456", *, expires_in: int = 600) -> Challenge:
    return Challenge(
        identity=identity,
        code=code,
        issued_at=NOW,
        expires_at=NOW + timedelta(seconds=expires_in),
        attempts=0,
        max_attempts=3,
        meta={"name": "Test User", "purpose": "verification"},
    )


async def _count(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(Challenge))
        return result.scalar_one()


# ── ChallengeStore ───────────────────────────────────────

@pytest.mark.asyncio
async def test_get_missing_returns_none(store):
    assert await store.get("nobody@example.com") is None


@pytest.mark.asyncio
async def test_upsert_then_get_round_trips_fields(store):
    await store.upsert("a@x.com", _challenge("a@x.com"))

    stored = await store.get("a@x.com")
    assert stored is not None
    assert stored.code == "123456"
    assert stored.attempts == 0
    assert stored.max_attempts == 3
    assert stored.meta == {"name": "Test User", "purpose": "verification"}
    assert stored.issued_at == NOW
    assert stored.expires_at.tzinfo is not None
    assert stored.expires_at == NOW + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_upsert_replaces_existing_challenge(store, session_factory):
    await store.upsert("a@x.com", _challenge("a@x.com", "111111"))
    await store.increment_attempts("a@x.com")
    await store.upsert("a@x.com", _challenge("a@x.com", "222222"))

    stored = await store.get("a@x.com")
    assert stored.code == "222222"
    assert stored.attempts == 0
    assert await _count(session_factory) == 1


@pytest.mark.asyncio
async def test_delete_reports_whether_a_row_existed(store):
    await store.upsert("a@x.com", _challenge("a@x.com"))
    assert await store.delete("a@x.com") is True
    assert await store.delete("a@x.com") is False
    assert await store.get("a@x.com") is None


@pytest.mark.asyncio
async def test_increment_attempts(store):
    await store.upsert("a@x.com", _challenge("a@x.com"))
    assert await store.increment_attempts("a@x.com") == 1
    assert await store.increment_attempts("a@x.com") == 2
    assert (await store.get("a@x.com")).attempts == 2


@pytest.mark.asyncio
async def test_increment_attempts_on_missing_challenge(store):
    assert await store.increment_attempts("ghost@x.com") is None


@pytest.mark.asyncio
async def test_sweep_removes_only_expired(store, session_factory):
    await store.upsert("old@x.com", _challenge("old@x.com", expires_in=-1))
    await store.upsert("edge@x.com", _challenge("edge@x.com", expires_in=0))
    await store.upsert("live@x.com", _challenge("live@x.com", expires_in=600))

    removed = await store.sweep_expired(NOW)

    assert removed == 1
    assert await store.get("old@x.com") is None
    assert await store.get("edge@x.com") is not None
    assert await store.get("live@x.com") is not None
    assert await _count(session_factory) == 2


@pytest.mark.asyncio
async def test_sweep_with_nothing_expired(store):
    await store.upsert("live@x.com", _challenge("live@x.com"))
    assert await store.sweep_expired(NOW) == 0


# ── AccountRepository ────────────────────────────────────

@pytest.mark.asyncio
async def test_mark_verified_flips_flag_once(session_factory):
    async with session_factory() as session:
        session.add(Account(email="alice@example.com", name="Alice Johnson"))
        await session.commit()

    async with session_factory() as session, session.begin():
        repo = AccountRepository(session)
        assert await repo.mark_verified("alice@example.com", NOW) is True

    async with session_factory() as session, session.begin():
        repo = AccountRepository(session)
        account = await repo.find_by_email("alice@example.com")
        assert account.email_verified is True
        assert account.verified_at == NOW
        assert await repo.mark_verified("alice@example.com", NOW) is False


@pytest.mark.asyncio
async def test_mark_verified_without_account(session_factory):
    async with session_factory() as session, session.begin():
        repo = AccountRepository(session)
        assert await repo.find_by_email("nobody@example.com") is None
        assert await repo.mark_verified("nobody@example.com", NOW) is False
