import pytest
from pydantic import ValidationError

from chatwidget.app.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.rate_limit_requests_per_minute == 30
    assert settings.rate_limit_burst_limit == 5
    assert settings.rate_limit_burst_window_seconds == 10
    assert settings.captcha_ttl_seconds == 300
    assert settings.captcha_max_attempts == 3
    assert settings.stream_token_delay_seconds == 0.15
    assert settings.waf_enabled is True
    assert settings.admin_token == ""


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "widget.example.nl")

    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["http://widget.example.nl", "https://widget.example.nl"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:5173"]', ["http://localhost:5173"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected


def test_exempt_paths_from_env(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_EXEMPT_PATHS", "/health, /metrics")

    settings = Settings(_env_file=None)
    assert settings.rate_limit_exempt_paths == ["/health", "/metrics"]


def test_bot_patterns_lowercased(monkeypatch) -> None:
    monkeypatch.setenv("BOT_USER_AGENT_PATTERNS", '["HeadlessChrome", "Curl"]')

    settings = Settings(_env_file=None)
    assert settings.bot_user_agent_patterns == ["headlesschrome", "curl"]


@pytest.mark.parametrize(
    "field",
    [
        "rate_limit_requests_per_minute",
        "rate_limit_burst_limit",
        "rate_limit_window_seconds",
        "captcha_max_attempts",
        "captcha_max_active_challenges",
    ],
)
def test_rejects_non_positive_limits(field: str) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_rejects_negative_stream_delay() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, stream_token_delay_seconds=-0.1)


def test_rejects_zero_cleanup_interval() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, rate_limit_cleanup_interval_seconds=0)
