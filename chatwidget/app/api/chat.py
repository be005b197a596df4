"""Chat API endpoint for the widget."""

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatwidget.app.api.chat_responses import (
    create_stream_response,
    sanitize_message,
    stream_chat_turn,
    strip_knowledge_context,
)
from chatwidget.app.api.dependencies import AppServices, get_services
from chatwidget.app.core.logging import get_log_context, get_logger
from chatwidget.app.exceptions import (
    BotDetectedError,
    CaptchaRequiredError,
    InvalidRequestError,
    MissingTenantError,
    RateLimitExceededError,
    WAFBlockedError,
)
from chatwidget.app.middleware.rate_limit import client_key, get_client_ip
from chatwidget.app.middleware.request_id import get_request_id

router = APIRouter()
logger = get_logger(__name__)


class ChatQuery(BaseModel):
    """Request body for one chat turn. ``content`` and ``message`` are synonyms."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content: Optional[str] = None
    message: Optional[str] = None
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")

    @property
    def text(self) -> str:
        return (self.content or self.message or "").strip()


async def read_json_body(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object.

    Raises:
        InvalidRequestError: If the body is not a JSON object
    """
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("Invalid JSON in request body", code="INVALID_JSON")
    if not isinstance(body, dict):
        raise InvalidRequestError("Request body must be a JSON object", code="INVALID_JSON")
    return body


@router.post("/api/ai/query", response_model=None)
async def ai_query(
    request: Request,
    services: AppServices = Depends(get_services),
) -> StreamingResponse:
    """Stream one chat turn as server-sent events.

    Gates, in order:
    1. Tenant lookup (400 missing, 404 unknown)
    2. Rate limiter (429 RATE_LIMIT_EXCEEDED with Retry-After)
    3. Bot policy: a known bot user agent without a solved captcha (429 BOT_DETECTED)
    4. Content validation (400 EMPTY_CONTENT)
    5. WAF on the chat text (403 WAF_BLOCKED, or 429 CAPTCHA_REQUIRED on a challenge)

    Returns:
        StreamingResponse of ``data: <json>`` frames
    """
    request_id = get_request_id(request)
    body = await read_json_body(request)

    try:
        query = ChatQuery.model_validate(body)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid request body: {e.error_count()} validation error(s)")

    tenant_id = request.headers.get("X-Tenant-ID") or query.tenant_id
    if not tenant_id:
        raise MissingTenantError()
    tenant = services.tenants.require(tenant_id)

    key = client_key(tenant_id, request)
    log_extra = get_log_context(
        request_id=request_id,
        tenant_id=tenant_id,
        client_ip=get_client_ip(request),
        conversation_id=query.conversation_id,
    )

    limiter = services.rate_limiter
    limits = services.tenants.rate_limit_config(tenant, limiter.config)
    result = limiter.is_allowed(
        key,
        path=request.url.path,
        user_agent=request.headers.get("User-Agent"),
        config=limits,
    )
    if not result.allowed:
        logger.info(f"Chat request rate limited: {result.reason}", extra=log_extra)
        raise RateLimitExceededError(result.retry_after or 1, result.reason or "Rate limit exceeded")

    if result.bot_user_agent and result.captcha_required:
        logger.warning(f"Bot detected: {result.bot_reason}", extra=log_extra)
        raise BotDetectedError(result.bot_reason or "Automated traffic detected")

    text = strip_knowledge_context(query.text)
    if not text:
        raise InvalidRequestError("Empty message content", code="EMPTY_CONTENT")

    verdict = services.waf.check_request("POST", request.url.path, {}, text)
    if verdict.blocked:
        raise WAFBlockedError(verdict.rule.id, verdict.reason)
    if verdict.challenge and not limiter.is_verified(key):
        raise CaptchaRequiredError(verdict.reason)

    message = sanitize_message(text)
    if not message:
        raise InvalidRequestError("Empty message content", code="EMPTY_CONTENT")

    logger.info("Chat turn accepted", extra=log_extra)
    generator = stream_chat_turn(
        request,
        services.responder,
        tenant,
        message,
        request_id=request_id,
        conversation_id=query.conversation_id,
        token_delay=services.settings.stream_token_delay_seconds,
    )
    return create_stream_response(generator, request_id, captcha_required=result.captcha_required)
