"""Rate limiting and bot detection for the chat widget backend.

This package provides the in-memory limiter that gates every chat turn:
a burst window, a per-minute window and advisory bot heuristics.
"""

import time
from typing import Callable

from chatwidget.app.core.config import Settings

# Re-export models
from chatwidget.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)
from chatwidget.app.middleware.rate_limit.bot_detection import BotDetector
from chatwidget.app.middleware.rate_limit.limiter import (
    BURST_LIMIT_REASON,
    RATE_LIMIT_REASON,
    RateLimiter,
    client_key,
    get_client_ip,
)

__all__ = [
    # Models
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    # Main classes
    "BotDetector",
    "RateLimiter",
    "create_rate_limiter",
    # Helpers
    "client_key",
    "get_client_ip",
    "BURST_LIMIT_REASON",
    "RATE_LIMIT_REASON",
]


def create_rate_limiter(settings: Settings, clock: Callable[[], float] = time.time) -> RateLimiter:
    """Build the process-wide rate limiter from settings."""
    return RateLimiter(
        config=RateLimitConfig.from_settings(settings),
        bot_detector=BotDetector.from_settings(settings),
        interval_history_size=settings.bot_interval_history_size,
        captcha_bypass_ttl_seconds=settings.captcha_bypass_ttl_seconds,
        clock=clock,
    )
