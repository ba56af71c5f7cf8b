from fastapi import HTTPException, status
from redis.exceptions import RedisError

from app.core.settings import settings
from app.utils.redis_client import get_redis_client


def _lockout_seconds() -> int:
    return max(1, settings.login_lockout_minutes * 60)


async def check_lockout(email: str) -> None:
    redis = get_redis_client()
    try:
        locked = await redis.get(f"login_lock:{email}")
    except RedisError:
        return
    if locked:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts; try later",
        )


async def register_login_attempt(email: str, success: bool) -> None:
    redis = get_redis_client()
    fail_key = f"login_fail:{email}"
    lock_key = f"login_lock:{email}"
    try:
        if success:
            await redis.delete(fail_key, lock_key)
            return
        attempts = await redis.incr(fail_key)
        await redis.expire(fail_key, _lockout_seconds())
        if attempts < settings.login_attempt_limit:
            return
        await redis.setex(lock_key, _lockout_seconds(), 1)
        await redis.delete(fail_key)
    except RedisError:
        return
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Account temporarily locked due to failed attempts",
    )
