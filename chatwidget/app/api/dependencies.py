"""Service container and FastAPI dependencies.

All abuse protection state lives in explicitly owned service objects built
once per application and stored on ``app.state.services``.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Request

from chatwidget.app.core.config import Settings
from chatwidget.app.core.logging import get_logger
from chatwidget.app.exceptions import AdminAuthError
from chatwidget.app.middleware.rate_limit import RateLimiter, create_rate_limiter
from chatwidget.app.providers.base import BaseResponder
from chatwidget.app.providers.mock import MockResponder
from chatwidget.app.services.captcha import CaptchaService
from chatwidget.app.services.cleanup import CleanupScheduler
from chatwidget.app.services.tenants import TenantRegistry
from chatwidget.app.services.waf import WAFService

logger = get_logger(__name__)


@dataclass
class AppServices:
    settings: Settings
    rate_limiter: RateLimiter
    waf: WAFService
    captcha: CaptchaService
    tenants: TenantRegistry
    responder: BaseResponder
    cleanup: CleanupScheduler


def build_services(
    settings: Settings,
    responder: Optional[BaseResponder] = None,
    tenants: Optional[TenantRegistry] = None,
    clock: Optional[Callable[[], float]] = None,
) -> AppServices:
    """Construct every service from settings.

    Args:
        settings: Application settings
        responder: Reply generator, defaults to the mock responder
        tenants: Tenant registry, defaults to the seeded demo tenants
        clock: Wall-clock source shared by limiter and captcha (tests)

    Raises:
        ValueError: If the configured WAF rules file is invalid
    """
    clock = clock or time.time

    rate_limiter = create_rate_limiter(settings, clock=clock)

    waf = WAFService(enabled=settings.waf_enabled)
    if settings.waf_rules_file:
        waf.load_rules_file(settings.waf_rules_file)

    captcha = CaptchaService(
        ttl_seconds=settings.captcha_ttl_seconds,
        max_attempts=settings.captcha_max_attempts,
        max_active=settings.captcha_max_active_challenges,
        clock=clock,
    )

    return AppServices(
        settings=settings,
        rate_limiter=rate_limiter,
        waf=waf,
        captcha=captcha,
        tenants=tenants or TenantRegistry(),
        responder=responder or MockResponder(initial_latency=settings.stream_initial_latency_seconds),
        cleanup=CleanupScheduler(
            rate_limiter,
            captcha,
            interval=settings.rate_limit_cleanup_interval_seconds,
        ),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_rate_limiter(services: AppServices = Depends(get_services)) -> RateLimiter:
    return services.rate_limiter


def get_waf_service(services: AppServices = Depends(get_services)) -> WAFService:
    return services.waf


def get_captcha_service(services: AppServices = Depends(get_services)) -> CaptchaService:
    return services.captcha


def get_tenant_registry(services: AppServices = Depends(get_services)) -> TenantRegistry:
    return services.tenants


def require_admin(request: Request, services: AppServices = Depends(get_services)) -> None:
    """Guard for the administrative side channel.

    Raises:
        AdminAuthError: If admin access is disabled or the bearer token is wrong
    """
    expected = services.settings.admin_token
    if not expected:
        raise AdminAuthError("Admin API is disabled")

    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        raise AdminAuthError()
    token = auth[7:].strip()
    if not secrets.compare_digest(token.encode(), expected.encode()):
        logger.warning(
            "Rejected admin request with invalid token",
            extra={"path": request.url.path, "method": request.method},
        )
        raise AdminAuthError()
