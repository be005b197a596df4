"""Health and tenant configuration endpoints (exempt from rate limiting)."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from chatwidget.app.api.dependencies import AppServices, get_rate_limiter, get_services, get_tenant_registry
from chatwidget.app.middleware.rate_limit import RateLimiter
from chatwidget.app.services.tenants import TenantRegistry

router = APIRouter()


@router.get("/health")
@router.get("/api/health")
async def health(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Health check with the status of each in-process component."""
    health_status: Dict[str, Any] = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {},
    }

    waf_stats = services.waf.get_stats()
    health_status["components"]["waf"] = {
        "status": "ok" if services.waf.enabled else "disabled",
        "rules": waf_stats["totalRules"],
    }

    responder_ok = await services.responder.health_check()
    if not responder_ok:
        health_status["status"] = "degraded"
    health_status["components"]["responder"] = {"status": "ok" if responder_ok else "error"}

    health_status["components"]["cleanup"] = {
        "status": "running" if services.cleanup.running else "stopped",
    }
    return health_status


@router.get("/api/tenant/{tenant_id}/config")
async def tenant_config(
    tenant_id: str,
    tenants: TenantRegistry = Depends(get_tenant_registry),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    """Public widget configuration with the effective rate limits."""
    tenant = tenants.require(tenant_id)
    limits = tenants.rate_limit_config(tenant, limiter.config)
    return tenant.to_public_dict(limits)
