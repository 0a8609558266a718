"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from otp_verifier.api.router import router as otp_router
from otp_verifier.config import Settings, settings as default_settings
from otp_verifier.database import engine as db
from otp_verifier.database.repository import ChallengeStore
from otp_verifier.services.challenge_service import ChallengePolicy, ChallengeService
from otp_verifier.services.clock import Clock, SystemClock
from otp_verifier.services.code_generator import CodeGenerator
from otp_verifier.services.notification import NotificationSink, build_notification_sink
from otp_verifier.services.sweeper import ExpiredChallengeSweeper
from otp_verifier.services.verification_bridge import (
    VerificationBridge,
    build_verification_bridge,
)

logging.basicConfig(
    level=logging.DEBUG if default_settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: NotificationSink | None = None,
    bridge: VerificationBridge | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Build the application with its collaborators wired in.

    Anything left as ``None`` is derived from *settings*; tests pass their
    own engine, sinks and clock.
    """
    settings = settings or default_settings
    engine = engine or db.engine
    session_factory = session_factory or db.async_session_factory
    clock = clock or SystemClock()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", settings.app_name)
        await db.init_db(engine)
        logger.info("Database initialised")

        policy = ChallengePolicy.from_settings(settings)
        store = ChallengeStore(session_factory)
        app.state.settings = settings
        app.state.challenge_service = ChallengeService(
            store,
            notifier or build_notification_sink(settings),
            bridge or build_verification_bridge(settings, session_factory, clock),
            policy=policy,
            generator=CodeGenerator(policy.code_length),
            clock=clock,
        )
        sweeper = ExpiredChallengeSweeper(
            store, interval_seconds=settings.otp_sweep_interval_seconds, clock=clock
        )
        app.state.sweeper = sweeper
        sweeper.start()
        if settings.status_enabled:
            logger.warning("Operator status endpoint is enabled")
        if not settings.email_notifications_enabled and settings.debug:
            logger.warning("Email delivery disabled, passcodes are written to the log")

        yield

        await sweeper.stop()
        logger.info("Shutting down %s …", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="One-time passcode issuance and verification for email identities",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(otp_router)

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": settings.app_name}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "otp_verifier.main:app",
        host="0.0.0.0",
        port=8000,
        log_level="debug" if default_settings.debug else "info",
    )


if __name__ == "__main__":
    run()
