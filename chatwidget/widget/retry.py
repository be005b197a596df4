"""Reconnect backoff for the widget stream client.

Delays grow exponentially from ``base_delay`` and are capped at
``max_delay``; an optional jitter of up to one second spreads reconnects
from many widgets that lost the server at the same moment.
"""

import random
from dataclasses import dataclass, field
from typing import Tuple, Type

import httpx


class SSEClientError(Exception):
    """Base exception for widget stream failures."""


class SSEConnectionError(SSEClientError):
    """The stream could not be opened or broke off before a terminal event."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(SSEClientError):
    """The server answered 429. Never retried: waiting is the caller's decision."""

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        code: str | None = None,
        captcha_required: bool = False,
    ):
        super().__init__(message)
        self.retry_after = retry_after
        self.code = code
        self.captcha_required = captcha_required


@dataclass
class BackoffPolicy:
    """Configuration for reconnect attempts with exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt (default: 2)
        base_delay: Delay before the first retry in seconds (default: 1.0)
        max_delay: Cap on the exponential part of the delay (default: 5.0)
        jitter: Add a uniform random 0-1s on top of the delay
        retryable_exceptions: Exception types that trigger a retry

    Example:
        >>> policy = BackoffPolicy(jitter=False)
        >>> policy.calculate_delay(attempt=2)  # Returns 2.0
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 5.0
    jitter: bool = True
    max_jitter: float = 1.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        SSEConnectionError,
        httpx.TransportError,
    )
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay before a retry.

        delay = min(base_delay * 2 ^ (attempt - 1), max_delay) + jitter

        Args:
            attempt: The retry number (1-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(self.base_delay * (2 ** max(attempt - 1, 0)), self.max_delay)
        if self.jitter:
            delay += self.rng.uniform(0, self.max_jitter)
        return delay

    def is_retryable(self, exception: Exception) -> bool:
        """Check if an exception should trigger a retry.

        A rate-limit answer is final; any other HTTP or transport failure
        is retried.
        """
        if isinstance(exception, RateLimitedError):
            return False
        return isinstance(exception, self.retryable_exceptions)
