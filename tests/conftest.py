"""Shared fixtures for the chat widget backend tests."""

import pytest
from fastapi.testclient import TestClient

from chatwidget.app.core.config import Settings
from chatwidget.app.main import create_app

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
    """Controllable wall clock in seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        stream_token_delay_seconds=0,
        stream_initial_latency_seconds=0,
        admin_token=ADMIN_TOKEN,
        waf_rules_file="",
    )


@pytest.fixture
def app(test_settings, clock):
    return create_app(test_settings, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
