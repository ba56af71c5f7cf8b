from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel

from app.core.settings import settings
from app.utils.redis_client import get_redis_client

ModelT = TypeVar("ModelT", bound=BaseModel)

GENERATION_KEY = "admin_loans:generation"


async def _generation() -> str:
    redis = get_redis_client()
    value = await redis.get(GENERATION_KEY)
    return str(value or 0)


def stats_ttl() -> int:
    return settings.admin_stats_cache_seconds


def listing_ttl() -> int:
    return settings.admin_loans_cache_seconds


def detail_ttl() -> int:
    return settings.admin_loan_detail_cache_seconds


async def get_cached(name: str, model: type[ModelT]) -> ModelT | None:
    try:
        redis = get_redis_client()
        key = f"admin_loans:{await _generation()}:{name}"
        cached = await redis.get(key)
        if cached:
            return model.model_validate_json(cached)
    except Exception:
        return None
    return None


async def set_cached(name: str, value: BaseModel, ttl_seconds: int) -> None:
    try:
        redis = get_redis_client()
        key = f"admin_loans:{await _generation()}:{name}"
        await redis.setex(key, ttl_seconds, value.model_dump_json())
    except Exception:
        return None


async def invalidate() -> None:
    """Bump the generation so every cached stats/listing/detail entry is skipped."""
    try:
        redis = get_redis_client()
        await redis.incr(GENERATION_KEY)
    except Exception:
        return None
