"""SSE chat streaming protocol."""

from chatwidget.app.streaming.events import (
    SSE_HEADERS,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    PersonaEvent,
    SSEEvent,
    TypingEvent,
    encode_event,
    is_terminal,
    parse_event,
)

__all__ = [
    "SSE_HEADERS",
    "ContentEvent",
    "DoneEvent",
    "ErrorEvent",
    "PersonaEvent",
    "SSEEvent",
    "TypingEvent",
    "encode_event",
    "is_terminal",
    "parse_event",
]
