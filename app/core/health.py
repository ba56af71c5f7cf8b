from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text

from app.core.settings import settings
from app.db.session import engine
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"

# Reported but never counted against readiness.
INFORMATIONAL_CHECKS = {"payment_gateway"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:  # pragma: no cover - exercised in runtime
        return {"status": "error", "error": str(exc)}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
        return {"status": "ok"}
    except Exception as exc:
        return {"status": "error", "error": str(exc)}


def _check_payment_gateway() -> dict[str, str]:
    if not settings.paystack_secret_key:
        return {"status": "unconfigured", "error": "PAYSTACK_SECRET_KEY is not set"}
    return {"status": "ok", "base_url": settings.paystack_base_url}


async def collect_checks() -> dict[str, dict[str, Any]]:
    return {
        "database": await _check_db(),
        "redis": await _check_redis(),
        "payment_gateway": _check_payment_gateway(),
    }


def is_ready(checks: dict[str, dict[str, Any]]) -> bool:
    return all(
        check.get("status") == "ok"
        for name, check in checks.items()
        if name not in INFORMATIONAL_CHECKS
    )


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks = await collect_checks()
    ready = is_ready(checks)
    return {
        "status": "ok" if ready else "degraded",
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    return payload
