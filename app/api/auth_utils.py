from functools import lru_cache
from typing import Optional

from app.core.security import pwd_context, verify_password
from app.utils.login_security import check_lockout, register_login_attempt


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Unknown-email logins still pay for one bcrypt verification.
    return pwd_context.hash("timing-equaliser-password")


def constant_time_verify(user_password_hash: Optional[str], password: str) -> bool:
    if user_password_hash:
        return verify_password(password, user_password_hash)
    verify_password(password, _dummy_hash())
    return False


async def enforce_login_limits(email: str) -> None:
    await check_lockout(email)


async def record_login_attempt(email: str, success: bool) -> None:
    await register_login_attempt(email, success)
