"""SSE response handling for one chat turn."""

import asyncio
import re
import time
from typing import AsyncGenerator, Dict, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from chatwidget.app.core.logging import get_log_context, get_logger
from chatwidget.app.providers.base import BaseResponder
from chatwidget.app.services.tenants import TenantConfig
from chatwidget.app.streaming.events import (
    SSE_HEADERS,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    PersonaEvent,
    TypingEvent,
    encode_event,
)

logger = get_logger(__name__)

KNOWLEDGE_CONTEXT_MARKER = "\n\n📚 **Relevante informatie:**"
CONTENT_CONFIDENCE = 0.95
STREAM_ERROR_MESSAGE = "Er is een fout opgetreden bij het genereren van het antwoord."

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]*>")


def strip_knowledge_context(text: str) -> str:
    """Drop the knowledge snippets the widget appends after the user's own text."""
    if KNOWLEDGE_CONTEXT_MARKER in text:
        text = text.split(KNOWLEDGE_CONTEXT_MARKER, 1)[0]
    return text.strip()


def sanitize_message(text: str) -> str:
    """Strip the widget's knowledge context and any HTML from a user message."""
    text = strip_knowledge_context(text)
    text = _SCRIPT_TAG.sub("", text)
    text = _HTML_TAG.sub("", text)
    return text.strip()


async def stream_chat_turn(
    request: Request,
    responder: BaseResponder,
    tenant: TenantConfig,
    message: str,
    request_id: str,
    conversation_id: Optional[str] = None,
    token_delay: float = 0.0,
) -> AsyncGenerator[str, None]:
    """Yield the SSE frames for one chat turn.

    Frames: persona, typing, content per token, then exactly one of done or
    error. Once the response has started the status code is fixed, so a
    responder failure becomes an in-band error event.

    Args:
        request: Incoming request, polled for client disconnects
        responder: Reply generator
        tenant: Tenant whose persona answers
        message: Sanitized user message
        request_id: Request ID for log correlation
        conversation_id: Widget conversation id echoed in the done event
        token_delay: Fixed pause between content frames in seconds
    """
    log_extra = get_log_context(
        request_id=request_id,
        tenant_id=tenant.tenant_id,
        conversation_id=conversation_id,
    )
    persona = tenant.persona
    started = time.perf_counter()
    tokens = 0

    yield encode_event(PersonaEvent(
        persona=persona.id,
        tone=persona.tone,
        template_version=persona.template_version,
        prompt_template=persona.prompt_template,
    ))
    yield encode_event(TypingEvent(message="Assistant is typing..."))

    try:
        async for token in responder.stream_reply(tenant, message):
            if await request.is_disconnected():
                logger.info("Client disconnected, stopping stream", extra=log_extra)
                return
            if tokens > 0 and token_delay > 0:
                await asyncio.sleep(token_delay)
            tokens += 1
            yield encode_event(ContentEvent(token=token, confidence=CONTENT_CONFIDENCE))
    except asyncio.CancelledError:
        logger.info("Stream cancelled by client", extra=log_extra)
        raise
    except Exception as e:
        logger.error(f"Stream generation failed: {e}", extra=log_extra, exc_info=True)
        yield encode_event(ErrorEvent(message=STREAM_ERROR_MESSAGE, code="STREAM_ERROR"))
        return

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        f"Stream completed with {tokens} content events",
        extra={**log_extra, "duration_ms": duration_ms},
    )
    yield encode_event(DoneEvent(conversation_id=conversation_id))


def create_stream_response(
    generator: AsyncGenerator[str, None],
    request_id: str,
    captcha_required: bool = False,
) -> StreamingResponse:
    """Wrap an SSE frame generator in a text/event-stream response."""
    headers: Dict[str, str] = {**SSE_HEADERS, "X-Request-ID": request_id}
    if captcha_required:
        headers["X-Captcha-Required"] = "true"
    return StreamingResponse(generator, media_type="text/event-stream", headers=headers)
