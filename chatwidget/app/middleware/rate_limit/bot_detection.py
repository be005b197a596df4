"""Bot heuristics used by the rate limiter.

Two signals are combined: a substring blocklist on the User-Agent header
and a regularity check on the gaps between a client's recent requests.
Neither blocks a request by itself; the caller decides what to do with
the flag.
"""

import statistics
from typing import Iterable, List, Optional, Sequence

from chatwidget.app.core.config import Settings


class BotDetector:
    """Flags clients that look automated."""

    def __init__(
        self,
        user_agent_patterns: Iterable[str] = ("bot", "crawler", "spider", "scraper", "curl", "wget"),
        min_samples: int = 3,
        stddev_threshold_ms: float = 100.0,
        mean_threshold_ms: float = 2000.0,
    ):
        self.user_agent_patterns: List[str] = [p.lower() for p in user_agent_patterns]
        self.min_samples = min_samples
        self.stddev_threshold_ms = stddev_threshold_ms
        self.mean_threshold_ms = mean_threshold_ms

    @classmethod
    def from_settings(cls, settings: Settings) -> "BotDetector":
        return cls(
            user_agent_patterns=settings.bot_user_agent_patterns,
            min_samples=settings.bot_interval_min_samples,
            stddev_threshold_ms=settings.bot_interval_stddev_threshold_ms,
            mean_threshold_ms=settings.bot_interval_mean_threshold_ms,
        )

    def match_user_agent(self, user_agent: Optional[str]) -> Optional[str]:
        """Return the blocklist pattern the user agent contains, if any."""
        if not user_agent:
            return None
        ua = user_agent.lower()
        for pattern in self.user_agent_patterns:
            if pattern in ua:
                return pattern
        return None

    def has_regular_intervals(self, intervals_ms: Sequence[float]) -> bool:
        """True when recent gaps are both short and near-constant."""
        if len(intervals_ms) < self.min_samples:
            return False
        mean = statistics.fmean(intervals_ms)
        stddev = statistics.pstdev(intervals_ms)
        return stddev < self.stddev_threshold_ms and mean < self.mean_threshold_ms

    def detect(self, user_agent: Optional[str], intervals_ms: Sequence[float]) -> Optional[str]:
        """Return a reason string when the client looks like a bot.

        Args:
            user_agent: Raw User-Agent header value
            intervals_ms: Recent inter-request gaps in milliseconds

        Returns:
            Human readable reason, or None when nothing was flagged
        """
        pattern = self.match_user_agent(user_agent)
        if pattern is not None:
            return f"Suspicious user agent: {pattern}"
        if self.has_regular_intervals(intervals_ms):
            return "Suspiciously regular request intervals"
        return None
