from fastapi import APIRouter

from app.api.v1.routers import (
    auth,
    dashboard,
    health,
    loan_admin,
    loan_intake,
    payments,
    user,
    webhooks,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(loan_intake.router)
api_router.include_router(user.router)
api_router.include_router(loan_admin.router)
api_router.include_router(payments.router)
api_router.include_router(webhooks.router)
api_router.include_router(dashboard.router)

__all__ = ["api_router"]
