from unittest.mock import AsyncMock, Mock

from fastapi.testclient import TestClient

from chatwidget.app.main import create_app
from chatwidget.app.providers.mock import MockResponder


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "timestamp" in data
    assert data["components"]["waf"] == {"status": "ok", "rules": 17}
    assert data["components"]["responder"] == {"status": "ok"}


def test_api_health_alias(client):
    assert client.get("/api/health").json()["status"] == "ok"


def test_health_is_not_rate_limited(client):
    for _ in range(50):
        assert client.get("/api/health").status_code == 200


def test_cleanup_running_inside_lifespan(app):
    with TestClient(app) as client:
        data = client.get("/health").json()
    assert data["components"]["cleanup"] == {"status": "running"}


def test_degraded_when_responder_unhealthy(test_settings, clock):
    responder = MockResponder()
    responder.health_check = AsyncMock(return_value=False)
    client = TestClient(create_app(test_settings, responder=responder, clock=clock))

    data = client.get("/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["responder"] == {"status": "error"}


def test_tenant_config(client):
    resp = client.get("/api/tenant/test-tenant/config")
    assert resp.status_code == 200
    data = resp.json()
    assert data["tenantId"] == "test-tenant"
    assert data["persona"]["id"] == "retailmax"


def test_tenant_config_unknown(client):
    resp = client.get("/api/tenant/nobody/config")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Tenant not found: nobody", "code": "TENANT_NOT_FOUND"}


def test_request_id_generated(client):
    resp = client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 36


def test_request_id_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"


def test_unhandled_errors_are_500(test_settings, clock):
    app = create_app(test_settings, clock=clock)
    app.state.services.tenants.require = Mock(side_effect=KeyError("broken"))
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.post("/api/ai/query", json={"message": "Hallo"}, headers={"X-Tenant-ID": "demo-tenant"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert body["error"] == "Internal server error"


def test_malformed_request_id_replaced(client):
    resp = client.get("/health", headers={"X-Request-ID": "x" * 200})
    assert resp.headers["X-Request-ID"] != "x" * 200
    assert len(resp.headers["X-Request-ID"]) == 36
