"""SSE event types streamed for one chat turn.

Order on the wire: an optional ``persona`` event, at most one ``typing``
event, zero or more ``content`` events, then exactly one ``done`` or
``error`` event, after which the stream closes.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PersonaEvent(_Event):
    type: Literal["persona"] = "persona"
    persona: str
    tone: str
    template_version: Optional[str] = Field(default=None, alias="templateVersion")
    prompt_template: Optional[str] = Field(default=None, alias="promptTemplate")


class TypingEvent(_Event):
    type: Literal["typing"] = "typing"
    message: Optional[str] = None


class ContentEvent(_Event):
    type: Literal["content"] = "content"
    token: str
    confidence: Optional[float] = None


class DoneEvent(_Event):
    type: Literal["done"] = "done"
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


SSEEvent = Annotated[
    Union[PersonaEvent, TypingEvent, ContentEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"done", "error"})

_event_adapter: TypeAdapter = TypeAdapter(SSEEvent)


def encode_event(event: _Event) -> str:
    """Render one event as an SSE frame: ``data: <json>\\n\\n``."""
    return f"data: {event.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


def parse_event(payload: Union[str, bytes, dict[str, Any]]) -> SSEEvent:
    """Validate a JSON payload (or decoded mapping) into an event.

    Raises:
        pydantic.ValidationError: If the payload is not valid JSON or not a known event
    """
    if isinstance(payload, dict):
        return _event_adapter.validate_python(payload)
    return _event_adapter.validate_json(payload)


def is_terminal(event: SSEEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES
