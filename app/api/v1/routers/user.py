from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.auth import UserOut
from app.schemas.loan import UpdateStepRequest
from app.services import loan_intake

router = APIRouter(prefix="/user", tags=["user"])


@router.post("/update-step", response_model=UserOut)
async def update_step(
    payload: UpdateStepRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    user = await loan_intake.update_step(db, current_user, payload.step)
    await db.commit()
    return UserOut.model_validate(user)


@router.post("/complete-application", response_model=UserOut)
async def complete_application(
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserOut:
    try:
        user = await loan_intake.complete_application(db, current_user)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    return UserOut.model_validate(user)
