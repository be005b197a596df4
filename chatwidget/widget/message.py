"""Assistant message assembled from stream events."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from chatwidget.app.streaming.events import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    PersonaEvent,
    SSEEvent,
    TypingEvent,
)


@dataclass
class StreamingMessage:
    """One assistant reply as the widget renders it.

    ``handle`` is the event handler to pass to ``WidgetSSEClient.send``.
    Tokens are appended in arrival order; once a ``done`` or ``error``
    event arrives the message is finished and later events are ignored.
    """

    persona: Optional[str] = None
    tone: Optional[str] = None
    typing_message: Optional[str] = None
    tokens: List[str] = field(default_factory=list)
    conversation_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    finished_at: Optional[datetime] = None

    @property
    def text(self) -> str:
        return "".join(self.tokens).strip()

    @property
    def is_streaming(self) -> bool:
        return self.finished_at is None

    @property
    def is_typing(self) -> bool:
        return self.typing_message is not None and self.is_streaming

    def handle(self, event: SSEEvent) -> None:
        if not self.is_streaming:
            return

        if isinstance(event, PersonaEvent):
            self.persona = event.persona
            self.tone = event.tone
        elif isinstance(event, TypingEvent):
            self.typing_message = event.message or ""
        elif isinstance(event, ContentEvent):
            self.typing_message = None
            self.tokens.append(event.token)
        elif isinstance(event, DoneEvent):
            self.conversation_id = event.conversation_id
            self._finish()
        elif isinstance(event, ErrorEvent):
            self.error = event.message
            self.error_code = event.code
            self._finish()
        else:
            raise TypeError(f"Unhandled stream event: {type(event).__name__}")

    def _finish(self) -> None:
        self.typing_message = None
        self.finished_at = datetime.now()
