"""Abuse protection endpoints: WAF check, captcha, stats and the admin side channel."""

from typing import Any, Dict, List, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chatwidget.app.api.chat import read_json_body
from chatwidget.app.api.dependencies import (
    get_captcha_service,
    get_rate_limiter,
    get_tenant_registry,
    get_waf_service,
    require_admin,
)
from chatwidget.app.core.logging import get_logger
from chatwidget.app.exceptions import InvalidRequestError, RuleNotFoundError
from chatwidget.app.middleware.rate_limit import RateLimiter, client_key
from chatwidget.app.middleware.request_id import get_request_id
from chatwidget.app.services.captcha import CaptchaService
from chatwidget.app.services.tenants import TenantRegistry
from chatwidget.app.services.waf import WAFRule, WAFService

router = APIRouter(prefix="/abuse", tags=["abuse"])
logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class WAFCheckRequest(BaseModel):
    method: str = "GET"
    path: str = "/"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class CaptchaVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    challenge_id: str = Field(alias="challengeId", min_length=1)
    answer: str


class WAFRuleRequest(BaseModel):
    id: str = Field(min_length=1)
    name: str = ""
    pattern: str = Field(min_length=1)
    action: str = "block"
    severity: str = "medium"
    description: str = ""


class RateLimitResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(alias="tenantId", min_length=1)
    ip: str = Field(min_length=1)


async def parse_body(request: Request, model: Type[ModelT]) -> ModelT:
    """Validate the JSON body against ``model``; malformed bodies are a 400."""
    body = await read_json_body(request)
    try:
        return model.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidRequestError(f"Invalid request body: {fields}")


@router.post("/waf-check")
async def waf_check(request: Request, waf: WAFService = Depends(get_waf_service)) -> Dict[str, Any]:
    """Run the WAF against a described request and return the verdict."""
    payload = await parse_body(request, WAFCheckRequest)
    verdict = waf.check_request(payload.method, payload.path, payload.headers, payload.body)
    return {"success": True, **verdict.to_dict()}


@router.post("/captcha/generate")
async def captcha_generate(captcha: CaptchaService = Depends(get_captcha_service)) -> Dict[str, Any]:
    result = captcha.generate_challenge()
    return result.to_dict()


@router.post("/captcha/verify")
async def captcha_verify(
    request: Request,
    captcha: CaptchaService = Depends(get_captcha_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    tenants: TenantRegistry = Depends(get_tenant_registry),
) -> Dict[str, Any]:
    """Verify a captcha answer.

    Wrong, expired and exhausted answers are a 200 with ``verified: false``;
    only a malformed body is a 400. With an ``X-Tenant-ID`` header a success
    clears the caller's bot flag in the rate limiter.
    """
    payload = await parse_body(request, CaptchaVerifyRequest)
    result = captcha.verify_challenge(payload.challenge_id, payload.answer)

    if result.success:
        tenant_id = request.headers.get("X-Tenant-ID")
        if tenant_id and tenants.get(tenant_id) is not None:
            limiter.mark_verified(client_key(tenant_id, request))
    else:
        logger.info(
            f"Captcha verification failed: {result.failure.value if result.failure else 'unknown'}",
            extra={"request_id": get_request_id(request)},
        )

    response = result.to_dict()
    response["verified"] = result.success
    return response


@router.get("/stats")
async def abuse_stats(
    waf: WAFService = Depends(get_waf_service),
    captcha: CaptchaService = Depends(get_captcha_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    return {
        "success": True,
        "waf": waf.get_stats(),
        "captcha": captcha.get_stats(),
        "rateLimit": limiter.get_abuse_stats(),
    }


@router.get("/waf/rules", dependencies=[Depends(require_admin)])
async def list_waf_rules(waf: WAFService = Depends(get_waf_service)) -> Dict[str, Any]:
    rules: List[Dict[str, Any]] = [rule.to_dict() for rule in waf.get_rules()]
    return {"success": True, "rules": rules}


@router.post("/waf/rules", status_code=201, dependencies=[Depends(require_admin)])
async def add_waf_rule(request: Request, waf: WAFService = Depends(get_waf_service)) -> Dict[str, Any]:
    payload = await parse_body(request, WAFRuleRequest)
    try:
        rule = WAFRule.from_dict(payload.model_dump())
        waf.add_rule(rule)
    except ValueError as e:
        raise InvalidRequestError(str(e), code="INVALID_RULE")
    return {"success": True, "rule": rule.to_dict()}


@router.delete("/waf/rules/{rule_id}", dependencies=[Depends(require_admin)])
async def delete_waf_rule(rule_id: str, waf: WAFService = Depends(get_waf_service)) -> Dict[str, Any]:
    if not waf.remove_rule(rule_id):
        raise RuleNotFoundError(rule_id)
    return {"success": True, "ruleId": rule_id}


@router.post("/rate-limit/reset", dependencies=[Depends(require_admin)])
async def reset_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> Dict[str, Any]:
    payload = await parse_body(request, RateLimitResetRequest)
    key = f"{payload.tenant_id}:{payload.ip}"
    removed = limiter.reset_client(key)
    logger.info(f"Rate limit state reset for {key}", extra={"tenant_id": payload.tenant_id})
    return {"success": True, "key": key, "removed": removed}
