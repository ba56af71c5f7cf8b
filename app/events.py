import logging

from fastapi import FastAPI

from app.core.settings import settings
from app.db.init_db import init_db
from app.db.session import engine
from app.utils.redis_client import close_redis_client

logger = logging.getLogger(__name__)


def register_event_handlers(app: FastAPI) -> None:
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Application startup (environment=%s)", settings.environment)
        if not settings.paystack_secret_key:
            logger.warning("PAYSTACK_SECRET_KEY is not set; webhooks will be rejected")
        if settings.seed_on_startup:
            await init_db()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Application shutdown")
        await engine.dispose()
        await close_redis_client()
