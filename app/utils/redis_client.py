from functools import lru_cache

from redis.asyncio import Redis

from app.core.settings import settings


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    """Shared client for the admin cache, login lockout and readiness probe."""
    return Redis.from_url(settings.redis_url, decode_responses=True)


async def close_redis_client() -> None:
    # Nothing to release if no request ever touched Redis.
    if not get_redis_client.cache_info().currsize:
        return
    await get_redis_client().aclose()
    get_redis_client.cache_clear()
