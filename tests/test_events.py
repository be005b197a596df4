"""Tests for the SSE event protocol."""

import json

import pytest
from pydantic import ValidationError

from chatwidget.app.streaming import (
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    PersonaEvent,
    TypingEvent,
    encode_event,
    is_terminal,
    parse_event,
)


class TestEncode:
    """Tests for SSE frame encoding."""

    def test_frame_format(self):
        frame = encode_event(ContentEvent(token="Hallo ", confidence=0.95))

        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {"type": "content", "token": "Hallo ", "confidence": 0.95}

    def test_aliases_on_the_wire(self):
        frame = encode_event(PersonaEvent(
            persona="techcorp",
            tone="professioneel-technisch",
            template_version="v1.2",
            prompt_template="techcorp-professional-v1.2",
        ))

        data = json.loads(frame[6:])
        assert data["templateVersion"] == "v1.2"
        assert data["promptTemplate"] == "techcorp-professional-v1.2"
        assert "template_version" not in data

    def test_unset_fields_omitted(self):
        frame = encode_event(DoneEvent())

        assert json.loads(frame[6:]) == {"type": "done"}

    def test_non_ascii_token(self):
        frame = encode_event(ContentEvent(token="Onze tarieven variëren van €2,500"))

        assert parse_event(frame[6:].strip()).token == "Onze tarieven variëren van €2,500"


class TestParse:
    """Tests for event validation."""

    @pytest.mark.parametrize("payload,cls", [
        ('{"type": "persona", "persona": "retailmax", "tone": "vriendelijk"}', PersonaEvent),
        ('{"type": "typing", "message": "Assistant is typing..."}', TypingEvent),
        ('{"type": "content", "token": "x"}', ContentEvent),
        ('{"type": "done", "conversationId": "conv-1"}', DoneEvent),
        ('{"type": "error", "message": "kapot", "code": "STREAM_ERROR"}', ErrorEvent),
    ])
    def test_known_types(self, payload, cls):
        assert isinstance(parse_event(payload), cls)

    def test_done_conversation_id(self):
        event = parse_event({"type": "done", "conversationId": "conv-42"})

        assert event.conversation_id == "conv-42"

    def test_bytes_payload(self):
        assert parse_event(b'{"type": "content", "token": "a"}').token == "a"

    @pytest.mark.parametrize("payload", [
        '{"type": "unknown"}',
        '{"token": "no type"}',
        '{"type": "content"}',
        '{"type": "error"}',
        "not json",
    ])
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValidationError):
            parse_event(payload)

    def test_events_are_immutable(self):
        event = ContentEvent(token="a")

        with pytest.raises(ValidationError):
            event.token = "b"


class TestTerminal:
    """Tests for terminal event detection."""

    def test_terminal_events(self):
        assert is_terminal(DoneEvent()) is True
        assert is_terminal(ErrorEvent(message="x")) is True

    def test_non_terminal_events(self):
        assert is_terminal(TypingEvent()) is False
        assert is_terminal(ContentEvent(token="a")) is False
        assert is_terminal(PersonaEvent(persona="p", tone="t")) is False
