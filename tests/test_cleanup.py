"""Tests for the background cleanup scheduler."""

import asyncio
from unittest.mock import Mock

import pytest

from chatwidget.app.middleware.rate_limit import RateLimiter
from chatwidget.app.services.captcha import CaptchaService
from chatwidget.app.services.cleanup import CleanupScheduler


class TestRunOnce:
    """Tests for a single sweep."""

    def test_sweeps_both_stores(self, clock):
        limiter = RateLimiter(clock=clock)
        captcha = CaptchaService(ttl_seconds=30, clock=clock)
        limiter.is_allowed("demo-tenant:1.1.1.1")
        captcha.generate_challenge()
        clock.advance(61)

        removed = CleanupScheduler(limiter, captcha).run_once()

        assert removed == {"rateLimitEntries": 1, "captchaChallenges": 1}
        assert limiter.get_abuse_stats()["trackedClients"] == 0
        assert captcha.get_stats()["activeChallenges"] == 0

    def test_nothing_to_sweep(self, clock):
        scheduler = CleanupScheduler(RateLimiter(clock=clock), CaptchaService(clock=clock))

        assert scheduler.run_once() == {"rateLimitEntries": 0, "captchaChallenges": 0}


class TestScheduler:
    """Tests for the background task lifecycle."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = CleanupScheduler(RateLimiter(), CaptchaService(), interval=60)

        await scheduler.start()
        assert scheduler.running is True

        await scheduler.stop()
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        scheduler = CleanupScheduler(RateLimiter(), CaptchaService(), interval=60)

        await scheduler.start()
        task = scheduler._task
        await scheduler.start()

        assert scheduler._task is task
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_sweeps_periodically(self):
        limiter = Mock(spec=RateLimiter)
        limiter.cleanup.return_value = 0
        captcha = Mock(spec=CaptchaService)
        captcha.cleanup_expired.return_value = 0
        scheduler = CleanupScheduler(limiter, captcha, interval=0.01)

        await scheduler.start()
        await asyncio.sleep(0.1)
        await scheduler.stop()

        assert limiter.cleanup.call_count >= 2
        assert captcha.cleanup_expired.call_count >= 2

    @pytest.mark.asyncio
    async def test_sweep_errors_do_not_stop_the_task(self):
        limiter = Mock(spec=RateLimiter)
        limiter.cleanup.side_effect = RuntimeError("boom")
        scheduler = CleanupScheduler(limiter, Mock(spec=CaptchaService), interval=0.01)

        await scheduler.start()
        await asyncio.sleep(0.05)

        assert scheduler.running is True
        assert limiter.cleanup.call_count >= 2
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        scheduler = CleanupScheduler(RateLimiter(), CaptchaService())

        await scheduler.stop()

        assert scheduler.running is False
