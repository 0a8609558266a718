"""Seed script — populates the database with sample accounts for testing."""

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession

from otp_verifier.database.engine import async_session_factory, init_db
from otp_verifier.models.account import Account

SAMPLE_ACCOUNTS = [
    Account(email="alice@example.com", name="Alice Johnson"),
    Account(email="bob@example.com", name="Bob Smith"),
    Account(email="carol@example.com", name="Carol Davis"),
]


async def seed() -> None:
    """Insert sample accounts into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        session.add_all(SAMPLE_ACCOUNTS)
        await session.commit()
    print(f"✅ Seeded {len(SAMPLE_ACCOUNTS)} accounts into the database.")


if __name__ == "__main__":
    asyncio.run(seed())
