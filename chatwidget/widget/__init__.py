"""Python consumer for the chat widget SSE stream."""

from chatwidget.widget.message import StreamingMessage
from chatwidget.widget.retry import (
    BackoffPolicy,
    RateLimitedError,
    SSEClientError,
    SSEConnectionError,
)
from chatwidget.widget.sse_client import (
    ConnectionState,
    SSEClientConfig,
    WidgetSSEClient,
    iter_sse_data,
)

__all__ = [
    "BackoffPolicy",
    "ConnectionState",
    "RateLimitedError",
    "SSEClientConfig",
    "SSEClientError",
    "SSEConnectionError",
    "StreamingMessage",
    "WidgetSSEClient",
    "iter_sse_data",
]
