from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_password_hash
from app.models.user import User
from app.models.wallet import Wallet
from app.schemas.auth import RegisterRequest, UserRole


class EmailAlreadyRegistered(ValueError):
    pass


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == email.lower())
    return (await db.execute(stmt)).scalar_one_or_none()


async def register_user(db: AsyncSession, payload: RegisterRequest) -> User:
    """Create a borrower account together with its (empty) wallet."""
    email = str(payload.email).lower()
    if await get_user_by_email(db, email):
        raise EmailAlreadyRegistered("User with this email already exists")

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        full_name=payload.full_name,
        phone=payload.phone,
        role=UserRole.USER.value,
        current_step=1,
        application_complete=False,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    db.add(Wallet(user_id=user.id, balance=Decimal("0")))
    await db.flush()
    return user


def mark_login(user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
