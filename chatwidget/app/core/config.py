import json
import re
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_list(raw: Any) -> list[str]:
    """Parse a list setting given as JSON or as a comma/space separated string."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []

    # Prefer JSON (recommended format), but tolerate plain separated values to
    # avoid crashing the app on misconfigured deployments.
    if raw.startswith("["):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]

    return [p for p in re.split(r"[,\s]+", raw) if p]


def _parse_cors_origins(raw: Any) -> list[str]:
    items = _parse_list(raw)
    if "*" in items:
        return ["*"]

    origins: list[str] = []
    for part in items:
        if "://" in part:
            origins.append(part)
            continue
        # If a host is provided without scheme, support both HTTP and HTTPS
        # origins. Browsers include the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    # Deduplicate while preserving order.
    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | json

    # Rate limiting settings (per tenant:ip key)
    rate_limit_requests_per_minute: int = 30
    rate_limit_burst_limit: int = 5
    rate_limit_window_seconds: int = 60
    rate_limit_burst_window_seconds: int = 10
    rate_limit_exempt_paths: Annotated[list[str], NoDecode] = [
        "/health",
        "/api/health",
        "/config",
    ]
    rate_limit_cleanup_interval_seconds: float = 60.0

    # Bot heuristics
    bot_user_agent_patterns: Annotated[list[str], NoDecode] = [
        "bot",
        "crawler",
        "spider",
        "scraper",
        "curl",
        "wget",
    ]
    bot_interval_history_size: int = 10
    bot_interval_min_samples: int = 3
    bot_interval_stddev_threshold_ms: float = 100.0
    bot_interval_mean_threshold_ms: float = 2000.0
    captcha_bypass_ttl_seconds: int = 600

    # Web application firewall
    waf_enabled: bool = True
    waf_rules_file: str = ""  # Optional JSON file with extra rules

    # Captcha challenges
    captcha_ttl_seconds: int = 300
    captcha_max_attempts: int = 3
    captcha_max_active_challenges: int = 10_000  # Oldest challenges are evicted beyond this

    # SSE streaming
    stream_token_delay_seconds: float = 0.15  # Pacing between content frames
    stream_initial_latency_seconds: float = 0.0

    # Admin side channel (WAF rule management, rate limit resets)
    # Empty token disables the admin endpoints.
    admin_token: str = ""

    # CORS settings
    # Use NoDecode so misconfigured values don't crash JSON parsing at startup.
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("rate_limit_exempt_paths", "bot_user_agent_patterns", mode="before")
    @classmethod
    def decode_list(cls, v: Any) -> list[str]:
        return _parse_list(v)

    @field_validator("bot_user_agent_patterns")
    @classmethod
    def lowercase_patterns(cls, v: list[str]) -> list[str]:
        return [p.lower() for p in v]

    @field_validator(
        "rate_limit_requests_per_minute",
        "rate_limit_burst_limit",
        "rate_limit_window_seconds",
        "rate_limit_burst_window_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator(
        "captcha_ttl_seconds",
        "captcha_max_attempts",
        "captcha_max_active_challenges",
        "captcha_bypass_ttl_seconds",
    )
    @classmethod
    def validate_captcha_positive(cls, v: int) -> int:
        """Validate captcha values are positive."""
        if v < 1:
            raise ValueError("Captcha values must be at least 1")
        return v

    @field_validator("bot_interval_history_size", "bot_interval_min_samples")
    @classmethod
    def validate_bot_samples(cls, v: int) -> int:
        if v < 2:
            raise ValueError("Bot interval sample sizes must be at least 2")
        return v

    @field_validator("stream_token_delay_seconds", "stream_initial_latency_seconds")
    @classmethod
    def validate_delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Stream delays cannot be negative")
        return v

    @field_validator("rate_limit_cleanup_interval_seconds")
    @classmethod
    def validate_cleanup_interval(cls, v: float) -> float:
        """Validate the sweep interval is positive."""
        if v <= 0:
            raise ValueError("rate_limit_cleanup_interval_seconds must be positive")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
