from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.redis_url,
)


def auth_rate_limit() -> str:
    return f"{settings.auth_rate_limit_per_minute}/minute"


__all__ = ["auth_rate_limit", "limiter"]
