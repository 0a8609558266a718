"""Background task that purges expired challenges on a fixed interval."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from otp_verifier.database.repository import ChallengeStore
from otp_verifier.services.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class ExpiredChallengeSweeper:
    """Owns the periodic expiry sweep.

    Purely housekeeping: ``verify`` checks expiry on its own, so a late or
    skipped sweep never changes an outcome.  ``start`` and ``stop`` are tied
    to the application lifespan.
    """

    def __init__(
        self,
        store: ChallengeStore,
        interval_seconds: float = 60.0,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._clock = clock or SystemClock()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Delete expired challenges now and return how many were removed."""
        removed = await self._store.sweep_expired(self._clock.now())
        if removed:
            logger.info("Cleaned up %d expired challenge(s)", removed)
        return removed

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="expired-challenge-sweeper")
        logger.info("Expired-challenge sweeper started (every %ss)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expired-challenge sweeper stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                # A failed sweep is retried on the next tick.
                logger.exception("Error cleaning up expired challenges")
