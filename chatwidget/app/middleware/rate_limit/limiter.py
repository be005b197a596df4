"""In-memory rate limiter with burst and per-minute windows.

State is process-local. A multi-instance deployment would need a shared
store to keep the limits correct across instances.
"""

import math
import threading
import time
from collections import OrderedDict, deque
from typing import Callable, Dict, Optional, Set

from fastapi import Request

from chatwidget.app.core.logging import get_logger
from chatwidget.app.middleware.rate_limit.bot_detection import BotDetector
from chatwidget.app.middleware.rate_limit.models import (
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)

logger = get_logger(__name__)

BURST_LIMIT_REASON = "Burst limit exceeded"
RATE_LIMIT_REASON = "Rate limit exceeded"


def _retry_after(reset_time: float, now: float) -> int:
    return max(1, math.ceil(reset_time - now))


class RateLimiter:
    """Per-key rate limiter evaluated in a fixed order.

    1. Exempt paths are always allowed and leave no trace.
    2. The burst window (default 5 requests per 10 seconds).
    3. The per-minute window (default 30 requests per 60 seconds).
    4. Bot heuristics, which only flag ``captcha_required``.

    Counters are only incremented for allowed requests, and the whole
    check-then-increment sequence runs under one lock so concurrent
    callers cannot over-admit.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        bot_detector: Optional[BotDetector] = None,
        interval_history_size: int = 10,
        captcha_bypass_ttl_seconds: float = 600,
        clock: Callable[[], float] = time.time,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize rate limiter.

        Args:
            config: Default limits, overridable per call
            bot_detector: Heuristics used for the advisory bot flag
            interval_history_size: Number of inter-request gaps kept per key
            captcha_bypass_ttl_seconds: How long a solved captcha silences the bot flag
            clock: Callable returning wall-clock seconds
            max_entries: Maximum number of keys to store (LRU eviction)
        """
        self.config = config or RateLimitConfig()
        self.bot_detector = bot_detector or BotDetector()
        self.interval_history_size = interval_history_size
        self.captcha_bypass_ttl_seconds = captcha_bypass_ttl_seconds
        self._clock = clock
        self._max_entries = max_entries

        self._entries: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._verified_until: Dict[str, float] = {}
        self._suspicious: Set[str] = set()
        self._total_requests = 0
        self._blocked_requests = 0
        self._captcha_required = 0

        self._lock = threading.Lock()

    def is_allowed(
        self,
        key: str,
        path: Optional[str] = None,
        user_agent: Optional[str] = None,
        config: Optional[RateLimitConfig] = None,
    ) -> RateLimitResult:
        """Check whether a request for ``key`` may proceed.

        Args:
            key: Composite identity, normally ``tenantId:ip``
            path: Request path, checked against the exempt list
            user_agent: User-Agent header for the bot heuristic
            config: Limits for this call, e.g. a tenant override

        Returns:
            RateLimitResult describing the decision
        """
        cfg = config or self.config
        if cfg.is_exempt(path):
            return RateLimitResult(allowed=True, limit=cfg.requests_per_minute,
                                   remaining=cfg.requests_per_minute)

        with self._lock:
            now = self._clock()
            self._total_requests += 1
            entry = self._get_entry(key)
            self._record_interval(entry, now)

            if now > entry.burst_reset_time:
                entry.burst_count = 0
                entry.burst_reset_time = now + cfg.burst_window_seconds
            if now > entry.reset_time:
                entry.count = 0
                entry.reset_time = now + cfg.window_seconds

            if entry.burst_count >= cfg.burst_limit:
                return self._reject(key, cfg.burst_limit, entry.burst_reset_time, now, BURST_LIMIT_REASON)
            if entry.count >= cfg.requests_per_minute:
                return self._reject(key, cfg.requests_per_minute, entry.reset_time, now, RATE_LIMIT_REASON)

            entry.burst_count += 1
            entry.count += 1

            result = RateLimitResult(
                allowed=True,
                limit=cfg.requests_per_minute,
                remaining=max(0, min(cfg.requests_per_minute - entry.count,
                                     cfg.burst_limit - entry.burst_count)),
            )

            bot_reason = self.bot_detector.detect(user_agent, entry.request_intervals)
            if bot_reason is not None:
                self._suspicious.add(key)
                result.bot_reason = bot_reason
                result.bot_user_agent = self.bot_detector.match_user_agent(user_agent) is not None
                if not self._is_verified(key, now):
                    result.captcha_required = True
                    self._captcha_required += 1
                    logger.info(
                        f"Bot heuristic flagged {key}: {bot_reason}",
                        extra={"rate_limit_key": key},
                    )
            return result

    def mark_verified(self, key: str) -> None:
        """Record that ``key`` solved a captcha; silences the bot flag for a while."""
        with self._lock:
            self._verified_until[key] = self._clock() + self.captcha_bypass_ttl_seconds
            self._suspicious.discard(key)

    def is_verified(self, key: str) -> bool:
        with self._lock:
            return self._is_verified(key, self._clock())

    def reset_client(self, key: str) -> bool:
        """Forget all state for ``key``. Returns True if anything was removed."""
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            removed = self._verified_until.pop(key, None) is not None or removed
            if key in self._suspicious:
                self._suspicious.discard(key)
                removed = True
            return removed

    def cleanup(self) -> int:
        """Remove entries whose windows have both expired.

        Returns:
            Number of rate limit entries removed
        """
        with self._lock:
            now = self._clock()
            stale = [key for key, entry in self._entries.items() if entry.is_stale(now)]
            for key in stale:
                del self._entries[key]
            expired = [key for key, until in self._verified_until.items() if until <= now]
            for key in expired:
                del self._verified_until[key]
            return len(stale)

    def get_abuse_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "totalRequests": self._total_requests,
                "blockedRequests": self._blocked_requests,
                "suspiciousClients": len(self._suspicious),
                "captchaRequired": self._captcha_required,
                "trackedClients": len(self._entries),
            }

    def reset(self) -> None:
        """Clear all state (test isolation / operational reset)."""
        with self._lock:
            self._entries.clear()
            self._verified_until.clear()
            self._suspicious.clear()
            self._total_requests = 0
            self._blocked_requests = 0
            self._captcha_required = 0

    def _get_entry(self, key: str) -> RateLimitEntry:
        entry = self._entries.get(key)
        if entry is None:
            self._enforce_lru_limit()
            entry = RateLimitEntry(request_intervals=deque(maxlen=self.interval_history_size))
            self._entries[key] = entry
        else:
            self._entries.move_to_end(key)
        return entry

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction."""
        if len(self._entries) >= self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._entries))):
                self._entries.popitem(last=False)

    @staticmethod
    def _record_interval(entry: RateLimitEntry, now: float) -> None:
        if entry.last_request_time is not None:
            entry.request_intervals.append((now - entry.last_request_time) * 1000.0)
        entry.last_request_time = now

    def _is_verified(self, key: str, now: float) -> bool:
        until = self._verified_until.get(key)
        return until is not None and until > now

    def _reject(self, key: str, limit: int, reset_time: float, now: float, reason: str) -> RateLimitResult:
        self._blocked_requests += 1
        retry_after = _retry_after(reset_time, now)
        logger.warning(
            f"{reason} for {key}, retry after {retry_after}s",
            extra={"rate_limit_key": key},
        )
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=0,
            retry_after=retry_after,
            reason=reason,
        )


def get_client_ip(request: Request) -> str:
    """Best-effort client address: first X-Forwarded-For hop, X-Real-IP, then the peer.

    Assumes the service runs behind a trusted reverse proxy that overwrites
    X-Forwarded-For and X-Real-IP. Exposed directly, a client can rotate
    these headers and get a fresh rate limit bucket per value.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def client_key(tenant_id: str, request: Request) -> str:
    """Build the ``tenantId:ip`` rate limit key for a request."""
    return f"{tenant_id}:{get_client_ip(request)}"
