"""Widget-side consumer for the chat SSE stream.

Opens ``POST /api/ai/query`` as a streaming request, validates each
``data:`` frame into an event and hands it to the caller. Transport
failures and non-2xx answers are retried with backoff; a 429 is surfaced
straight away so the widget can show a cooldown instead.
"""

import asyncio
import inspect
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Union

import httpx
from pydantic import ValidationError

from chatwidget.app.core.logging import get_logger
from chatwidget.app.streaming.events import SSEEvent, TypingEvent, is_terminal, parse_event
from chatwidget.widget.retry import (
    BackoffPolicy,
    RateLimitedError,
    SSEClientError,
    SSEConnectionError,
)

logger = get_logger(__name__)

QUERY_PATH = "/api/ai/query"
TYPING_MESSAGE = "Assistant is typing..."

EventHandler = Callable[[SSEEvent], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[SSEClientError], Union[None, Awaitable[None]]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STREAMING = "streaming"
    CONNECT_FAILED = "connect_failed"


@dataclass
class SSEClientConfig:
    """Connection settings for one widget instance.

    Attributes:
        base_url: Chat backend origin, e.g. ``http://localhost:3000``
        tenant_id: Tenant sent in the ``X-Tenant-ID`` header
        max_retries: Reconnect attempts after the first failure
        base_delay: First reconnect delay in seconds
        max_delay: Cap on the exponential reconnect delay in seconds
        jitter: Add up to one second of random delay per retry
        timeout: httpx timeout for connect and reads in seconds
    """

    base_url: str
    tenant_id: str
    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 5.0
    jitter: bool = True
    timeout: float = 30.0

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )


async def iter_sse_data(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Collect ``data:`` fields into one payload per event.

    Events end at a blank line; multiple ``data:`` lines in one event are
    joined with newlines. Comments and other fields are ignored.
    """
    buffer: list[str] = []
    async for line in lines:
        if not line:
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith("data:"):
            value = line[5:]
            buffer.append(value[1:] if value.startswith(" ") else value)
    if buffer:
        yield "\n".join(buffer)


async def _call(handler: Optional[Callable[[Any], Any]], value: Any) -> None:
    if handler is None:
        return
    result = handler(value)
    if inspect.isawaitable(result):
        await result


def _rate_limit_error(response: httpx.Response) -> RateLimitedError:
    """Build a RateLimitedError from a 429 body and its Retry-After header."""
    try:
        body: Dict[str, Any] = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    retry_after = body.get("retryAfter")
    if retry_after is None:
        header = response.headers.get("Retry-After")
        retry_after = int(header) if header and header.isdigit() else None

    return RateLimitedError(
        body.get("reason") or body.get("error") or "Too many requests",
        retry_after=retry_after,
        code=body.get("code"),
        captcha_required=bool(body.get("captchaRequired", False)),
    )


class WidgetSSEClient:
    """Streams chat turns from the backend for one widget.

    Usage:
        client = WidgetSSEClient(SSEClientConfig("http://localhost:3000", "demo-tenant"))
        await client.send("conv-1", "Hallo", on_event=render, on_error=show_error)
    """

    def __init__(
        self,
        config: SSEClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.backoff = backoff or config.backoff_policy()
        self._http_client = http_client
        self._sleep = sleep
        self._response: Optional[httpx.Response] = None
        self._state = ConnectionState.DISCONNECTED
        self._cancelled = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (ConnectionState.CONNECTED, ConnectionState.STREAMING)

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a throwaway one closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                yield client

    async def send(
        self,
        conversation_id: Optional[str],
        message: str,
        on_event: EventHandler,
        on_error: Optional[ErrorHandler] = None,
    ) -> bool:
        """Send one chat message and deliver the streamed events.

        Args:
            conversation_id: Widget conversation id, echoed in the ``done`` event
            message: User message
            on_event: Called with every validated event, sync or async
            on_error: Called once with the final error, if the turn failed

        Returns:
            True if the stream ran to a terminal event
        """
        self._cancelled = False
        await _call(on_event, TypingEvent(message=TYPING_MESSAGE))

        attempt = 0
        while True:
            try:
                await self._stream_once(conversation_id, message, on_event)
                return not self._cancelled
            except RateLimitedError as e:
                self._state = ConnectionState.CONNECT_FAILED
                logger.info(f"Chat request rate limited: {e}", extra={"tenant_id": self.config.tenant_id})
                await _call(on_error, e)
                return False
            except (SSEConnectionError, httpx.TransportError, httpx.StreamError) as e:
                if self._cancelled:
                    return False
                if not self.backoff.is_retryable(e) or attempt >= self.backoff.max_retries:
                    self._state = ConnectionState.CONNECT_FAILED
                    error = e if isinstance(e, SSEConnectionError) else SSEConnectionError(str(e) or type(e).__name__)
                    logger.error(
                        f"Chat stream failed after {attempt + 1} attempt(s): {error}",
                        extra={"tenant_id": self.config.tenant_id, "conversation_id": conversation_id},
                    )
                    await _call(on_error, error)
                    return False

                attempt += 1
                delay = self.backoff.calculate_delay(attempt)
                logger.warning(
                    f"Retry {attempt}/{self.backoff.max_retries} after {delay:.2f}s: {e}",
                    extra={"tenant_id": self.config.tenant_id, "conversation_id": conversation_id},
                )
                await _call(on_event, TypingEvent(message=f"Retrying... ({attempt}/{self.backoff.max_retries})"))
                await self._sleep(delay)
                if self._cancelled:
                    return False

    async def _stream_once(self, conversation_id: Optional[str], message: str, on_event: EventHandler) -> None:
        self._state = ConnectionState.CONNECTING
        payload = {
            "tenantId": self.config.tenant_id,
            "conversationId": conversation_id,
            "message": message,
        }
        url = f"{self.config.base_url.rstrip('/')}{QUERY_PATH}"
        headers = {"X-Tenant-ID": self.config.tenant_id, "Accept": "text/event-stream"}

        async with self._client_context() as client:
            async with client.stream("POST", url, json=payload, headers=headers) as response:
                if response.status_code == 429:
                    await response.aread()
                    raise _rate_limit_error(response)
                if not response.is_success:
                    await response.aread()
                    raise SSEConnectionError(
                        f"HTTP {response.status_code}: {response.reason_phrase}",
                        status_code=response.status_code,
                    )

                self._response = response
                self._state = ConnectionState.CONNECTED
                try:
                    await self._deliver(response, on_event)
                finally:
                    self._response = None

        if not self._cancelled:
            self._state = ConnectionState.DISCONNECTED

    async def _deliver(self, response: httpx.Response, on_event: EventHandler) -> None:
        async for data in iter_sse_data(response.aiter_lines()):
            if self._cancelled:
                return
            try:
                event = parse_event(data)
            except ValidationError:
                logger.warning(f"Skipping invalid SSE frame: {data[:100]}")
                continue

            self._state = ConnectionState.STREAMING
            await _call(on_event, event)
            if self._cancelled or is_terminal(event):
                return

        raise SSEConnectionError("Stream closed before a terminal event")

    async def disconnect(self) -> None:
        """Stop the current stream; buffered events are dropped."""
        self._cancelled = True
        self._state = ConnectionState.DISCONNECTED
        response = self._response
        if response is not None:
            await response.aclose()
