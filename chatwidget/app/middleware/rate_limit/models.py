"""Rate limiting data models.

This module contains dataclasses for rate limit configuration, per-client
state and check results.
"""

from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Deque, Dict, Optional, Tuple

from chatwidget.app.core.config import Settings


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits applied to one rate limit key."""
    requests_per_minute: int = 30
    burst_limit: int = 5
    window_seconds: int = 60
    burst_window_seconds: int = 10
    exempt_paths: Tuple[str, ...] = ("/health", "/api/health", "/config")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimitConfig":
        return cls(
            requests_per_minute=settings.rate_limit_requests_per_minute,
            burst_limit=settings.rate_limit_burst_limit,
            window_seconds=settings.rate_limit_window_seconds,
            burst_window_seconds=settings.rate_limit_burst_window_seconds,
            exempt_paths=tuple(settings.rate_limit_exempt_paths),
        )

    def with_overrides(
        self,
        requests_per_minute: Optional[int] = None,
        burst_limit: Optional[int] = None,
        exempt_paths: Optional[Tuple[str, ...]] = None,
    ) -> "RateLimitConfig":
        """Return a copy with the given tenant overrides applied."""
        changes: Dict[str, Any] = {}
        if requests_per_minute is not None:
            changes["requests_per_minute"] = requests_per_minute
        if burst_limit is not None:
            changes["burst_limit"] = burst_limit
        if exempt_paths is not None:
            changes["exempt_paths"] = tuple(exempt_paths)
        return replace(self, **changes)

    def is_exempt(self, path: Optional[str]) -> bool:
        if not path:
            return False
        return any(path.startswith(prefix) for prefix in self.exempt_paths)


@dataclass
class RateLimitEntry:
    """Per-key counters for the per-minute and burst windows.

    Times are wall-clock seconds. ``request_intervals`` holds the most recent
    gaps between requests in milliseconds.
    """
    count: int = 0
    reset_time: float = 0.0
    burst_count: int = 0
    burst_reset_time: float = 0.0
    last_request_time: Optional[float] = None
    request_intervals: Deque[float] = field(default_factory=lambda: deque(maxlen=10))

    def is_stale(self, now: float) -> bool:
        return now > self.reset_time and now > self.burst_reset_time


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int = 0
    remaining: int = 0
    retry_after: Optional[int] = None
    reason: Optional[str] = None
    captcha_required: bool = False
    bot_reason: Optional[str] = None
    bot_user_agent: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Render the boundary shape, omitting unset fields."""
        data: Dict[str, Any] = {"allowed": self.allowed}
        if self.retry_after is not None:
            data["retryAfter"] = self.retry_after
        if self.reason is not None:
            data["reason"] = self.reason
        if self.captcha_required:
            data["captchaRequired"] = True
        return data
