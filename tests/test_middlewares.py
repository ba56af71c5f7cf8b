import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from app.middlewares.security_headers import SecurityHeadersMiddleware
from app.middlewares.trust_proxies import TrustedProxiesMiddleware, client_ip_from_forwarded


@pytest.mark.parametrize(
    ("header", "proxies", "expected"),
    [
        ("203.0.113.7, 10.0.0.1", 1, "203.0.113.7"),
        ("198.51.100.2, 203.0.113.7, 10.0.0.1", 1, "203.0.113.7"),
        ("198.51.100.2, 203.0.113.7, 10.0.0.1", 2, "198.51.100.2"),
        ("10.0.0.1", 1, None),
        ("203.0.113.7, 10.0.0.1", 0, None),
        (" , ", 1, None),
    ],
)
def test_client_ip_from_forwarded(header, proxies, expected) -> None:
    assert client_ip_from_forwarded(header, proxies) == expected


def _echo_app(**middleware_kwargs) -> FastAPI:
    app = FastAPI()

    @app.get("/ip")
    async def ip(request: Request) -> dict:
        return {"host": request.client.host if request.client else None}

    app.add_middleware(TrustedProxiesMiddleware, **middleware_kwargs)
    return app


def test_trusted_proxy_rewrites_client() -> None:
    client = TestClient(_echo_app(proxies_count=1))

    response = client.get("/ip", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    assert response.json() == {"host": "203.0.113.7"}


def test_short_forwarded_chain_is_ignored() -> None:
    client = TestClient(_echo_app(proxies_count=2))

    response = client.get("/ip", headers={"X-Forwarded-For": "203.0.113.7"})

    assert response.json() == {"host": "testclient"}


def test_security_headers_optional_hsts() -> None:
    app = FastAPI()

    @app.get("/ping")
    async def ping() -> dict:
        return {"ok": True}

    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=True)
    response = TestClient(app).get("/ping")

    assert response.headers["x-frame-options"] == "DENY"
    assert "max-age" in response.headers["strict-transport-security"]
