"""Shared fixtures: file-backed SQLite database, manual clock, fake collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from otp_verifier.database.engine import init_db
from otp_verifier.database.repository import ChallengeStore
from otp_verifier.services.challenge_service import ChallengePolicy, ChallengeService


class ManualClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


@dataclass
class SentCode:
    identity: str
    code: str
    ttl_minutes: int
    name: str | None


class RecordingSink:
    """Notification sink that remembers what it was asked to deliver."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[SentCode] = []

    async def send(
        self, identity: str, code: str, ttl_minutes: int, name: str | None = None
    ) -> bool:
        self.sent.append(SentCode(identity, code, ttl_minutes, name))
        return self.succeed

    @property
    def last_code(self) -> str:
        return self.sent[-1].code


# ── Database ─────────────────────────────────────────────

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Fresh SQLite file per test, tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otp.db'}", echo=False)
    await init_db(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> ChallengeStore:
    return ChallengeStore(session_factory)


# ── Collaborators ────────────────────────────────────────

@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def notifier() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def bridge() -> AsyncMock:
    """Verification bridge that never touches a real account store."""
    mock = AsyncMock()
    mock.on_verified = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def service(store, notifier, bridge, clock) -> ChallengeService:
    return ChallengeService(store, notifier, bridge, policy=ChallengePolicy(), clock=clock)
