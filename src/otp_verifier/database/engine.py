"""Database engine and async session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from otp_verifier.config import settings
from otp_verifier.models.account import Account  # noqa: F401  (registers table)
from otp_verifier.models.base import Base
from otp_verifier.models.challenge import Challenge  # noqa: F401  (registers table)

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables that don't yet exist."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
