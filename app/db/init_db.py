import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select

from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User
from app.models.wallet import Wallet
from app.schemas.auth import UserRole

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Seed the administrator account and its wallet if missing."""
    async with AsyncSessionLocal() as session:
        stmt = select(User).where(User.email == settings.seed_admin_email.lower())
        user = (await session.execute(stmt)).scalar_one_or_none()
        if user:
            logger.info("Admin user already exists")
            return

        user = User(
            email=settings.seed_admin_email.lower(),
            hashed_password=get_password_hash(settings.seed_admin_password),
            full_name=settings.seed_admin_full_name,
            role=UserRole.ADMIN.value,
            current_step=1,
            application_complete=False,
            is_active=True,
        )
        session.add(user)
        await session.flush()
        session.add(Wallet(user_id=user.id, balance=Decimal("0")))
        await session.commit()
        logger.info("Admin user created: %s", user.email)


if __name__ == "__main__":
    asyncio.run(init_db())
