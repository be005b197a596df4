"""Periodic sweeper for in-memory abuse protection state.

Runs the rate limiter and captcha cleanups on a background task so stale
entries never pile up, without touching the request path.
"""

import asyncio
from typing import Optional

from chatwidget.app.core.logging import get_logger
from chatwidget.app.middleware.rate_limit import RateLimiter
from chatwidget.app.services.captcha import CaptchaService

logger = get_logger(__name__)


class CleanupScheduler:
    """Background task that sweeps stale limiter entries and expired challenges.

    Usage:
        scheduler = CleanupScheduler(rate_limiter, captcha_service, interval=60)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        captcha_service: CaptchaService,
        interval: float = 60.0,
    ):
        self._rate_limiter = rate_limiter
        self._captcha_service = captcha_service
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def run_once(self) -> dict:
        """Run one sweep and return what was removed."""
        entries = self._rate_limiter.cleanup()
        challenges = self._captcha_service.cleanup_expired()
        logger.debug(
            f"Cleanup sweep removed {entries} rate limit entries and {challenges} challenges"
        )
        return {"rateLimitEntries": entries, "captchaChallenges": challenges}

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._task is not None:
            logger.debug("Cleanup scheduler already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started cleanup scheduler (interval: {self._interval}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._task is None:
            return

        self._stop_event.set()

        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Cleanup task did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("Stopped cleanup scheduler")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error during cleanup sweep: {e}", exc_info=True)
