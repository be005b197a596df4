"""Tenant registry.

Holds per-tenant rate limit overrides, widget branding and the persona the
responder speaks with. Seeded with the two demo tenants.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from chatwidget.app.exceptions import TenantNotFoundError
from chatwidget.app.middleware.rate_limit import RateLimitConfig


@dataclass(frozen=True)
class TenantRateLimit:
    """Optional overrides of the global rate limit settings."""
    requests_per_minute: Optional[int] = None
    burst_limit: Optional[int] = None
    exempt_paths: Optional[Tuple[str, ...]] = None

    def apply(self, base: RateLimitConfig) -> RateLimitConfig:
        return base.with_overrides(
            requests_per_minute=self.requests_per_minute,
            burst_limit=self.burst_limit,
            exempt_paths=self.exempt_paths,
        )


@dataclass(frozen=True)
class Branding:
    primary_color: str
    welcome_message: str


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    tone: str
    template_version: str
    prompt_template: str
    welcome_message: str
    refusal_message: str
    personality: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TenantConfig:
    tenant_id: str
    branding: Branding
    persona: Persona
    ai_provider: str = "mock"
    rate_limit: TenantRateLimit = field(default_factory=TenantRateLimit)

    def to_public_dict(self, limits: Optional[RateLimitConfig] = None) -> Dict[str, Any]:
        """Configuration safe to hand to the widget.

        With limits, the effective rate limits are published; without, only
        the tenant's own overrides.
        """
        data: Dict[str, Any] = {
            "tenantId": self.tenant_id,
            "aiProvider": self.ai_provider,
            "branding": {
                "primaryColor": self.branding.primary_color,
                "welcomeMessage": self.branding.welcome_message,
            },
            "persona": {
                "id": self.persona.id,
                "name": self.persona.name,
                "tone": self.persona.tone,
                "templateVersion": self.persona.template_version,
                "welcomeMessage": self.persona.welcome_message,
            },
        }
        if limits is not None:
            data["rateLimit"] = {
                "requestsPerMinute": limits.requests_per_minute,
                "burstLimit": limits.burst_limit,
                "exemptPaths": list(limits.exempt_paths),
            }
            return data

        rate_limit: Dict[str, Any] = {}
        if self.rate_limit.requests_per_minute is not None:
            rate_limit["requestsPerMinute"] = self.rate_limit.requests_per_minute
        if self.rate_limit.burst_limit is not None:
            rate_limit["burstLimit"] = self.rate_limit.burst_limit
        if self.rate_limit.exempt_paths is not None:
            rate_limit["exemptPaths"] = list(self.rate_limit.exempt_paths)
        if rate_limit:
            data["rateLimit"] = rate_limit
        return data


TECHCORP_PERSONA = Persona(
    id="techcorp",
    name="TechCorp Solutions AI Assistant",
    tone="professioneel-technisch",
    template_version="v1.2",
    prompt_template="techcorp-professional-v1.2",
    welcome_message=(
        "Hallo! Ik ben de AI-assistent van TechCorp Solutions. "
        "Hoe kan ik je helpen met onze web development diensten?"
    ),
    refusal_message=(
        "Ik kan je niet helpen met deze vraag. Bij TechCorp Solutions helpen we graag "
        "met legitieme web development projecten. Wil je meer weten over onze diensten?"
    ),
    personality=(
        "Professioneel en technisch onderlegd",
        "Focus op web development en software oplossingen",
    ),
)

RETAILMAX_PERSONA = Persona(
    id="retailmax",
    name="RetailMax Customer Service AI",
    tone="vriendelijk-klantgericht",
    template_version="v1.1",
    prompt_template="retailmax-friendly-v1.1",
    welcome_message=(
        "Hallo! Welkom bij RetailMax. "
        "Ik help je graag met vragen over onze producten en services."
    ),
    refusal_message=(
        "Ik kan je niet helpen met deze vraag. Bij RetailMax staan we voor kwaliteit "
        "en service. Hoe kan ik je anders helpen?"
    ),
    personality=(
        "Vriendelijk en behulpzaam",
        "Focus op klanttevredenheid en service",
    ),
)


def default_tenants() -> List[TenantConfig]:
    """Demo tenants; they carry no overrides and follow the global limits."""
    return [
        TenantConfig(
            tenant_id="demo-tenant",
            branding=Branding("#0A84FF", "Welkom! Hoe kan ik je helpen?"),
            persona=TECHCORP_PERSONA,
        ),
        TenantConfig(
            tenant_id="test-tenant",
            branding=Branding("#FF6B6B", "Hallo! Ik ben je AI-assistent."),
            persona=RETAILMAX_PERSONA,
        ),
    ]


class TenantRegistry:
    """In-memory tenant lookup."""

    def __init__(self, tenants: Optional[List[TenantConfig]] = None):
        self._tenants: Dict[str, TenantConfig] = {}
        self._lock = threading.Lock()
        for tenant in default_tenants() if tenants is None else tenants:
            self._tenants[tenant.tenant_id] = tenant

    def get(self, tenant_id: str) -> Optional[TenantConfig]:
        with self._lock:
            return self._tenants.get(tenant_id)

    def require(self, tenant_id: str) -> TenantConfig:
        """Look up a tenant.

        Raises:
            TenantNotFoundError: If the tenant is unknown
        """
        tenant = self.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def set(self, tenant: TenantConfig) -> None:
        with self._lock:
            self._tenants[tenant.tenant_id] = tenant

    def tenant_ids(self) -> List[str]:
        with self._lock:
            return list(self._tenants)

    def rate_limit_config(self, tenant: TenantConfig, base: RateLimitConfig) -> RateLimitConfig:
        """Effective limits for a tenant on top of the global defaults."""
        return tenant.rate_limit.apply(base)
