import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    # Keep required secrets/settings present for health calls during tests
    monkeypatch.setattr(health_module.settings, "environment", "test")
    yield


async def _ok():
    return {"status": "ok"}


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload["checks"]["database"]["status"] == "ok"
    assert payload["checks"]["redis"]["status"] == "ok"
    assert payload["checks"]["payment_gateway"]["status"] == "ok"


def test_health_ready_degraded_returns_503(monkeypatch) -> None:
    async def bad_db():
        return {"status": "error", "error": "unreachable"}

    monkeypatch.setattr(health_module, "_check_db", bad_db)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 503
    payload = response.json()
    assert payload.get("status") == "degraded"
    assert payload.get("ready") is False
    assert payload["checks"]["database"]["status"] == "error"


def test_health_reports_degraded_without_failing(monkeypatch) -> None:
    async def bad_redis():
        return {"status": "error", "error": "connection refused"}

    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", bad_redis)

    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["data"]["ready"] is False


def test_unconfigured_gateway_does_not_block_readiness(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)
    monkeypatch.setattr(health_module.settings, "paystack_secret_key", "")

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["ready"] is True
    assert payload["checks"]["payment_gateway"]["status"] == "unconfigured"


def test_status_summary(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert payload.get("ready") is True
    assert payload.get("version") == health_module.APP_VERSION


def test_responses_carry_request_id_and_security_headers() -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "req-123"})
    assert response.headers["x-request-id"] == "req-123"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["cache-control"] == "no-store"
