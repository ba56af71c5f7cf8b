from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import Loan, User
from app.schemas.loan import (
    ApplicationReview,
    BankDetailsRequest,
    GuarantorInfoRequest,
    IdentityVerificationRequest,
    IntakeStepResponse,
    PersonalInfoRequest,
)
from app.services import loan_intake

router = APIRouter(prefix="/loan", tags=["loan-intake"])


async def _loan_or_404(db: AsyncSession, user: User, loan_id: UUID | None, message: str) -> Loan:
    loan = await loan_intake.resolve_loan(db, user, loan_id)
    if loan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=message)
    return loan


@router.post("/personal-info", response_model=IntakeStepResponse, summary="Save step 1 and size the loan")
async def save_personal_info(
    payload: PersonalInfoRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IntakeStepResponse:
    try:
        loan = await loan_intake.save_personal_info(db, current_user, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    return IntakeStepResponse(
        loan_id=loan.id,
        current_step=current_user.current_step,
        message="Personal information saved successfully",
    )


@router.post("/identity-verification", response_model=IntakeStepResponse)
async def save_identity_verification(
    payload: IdentityVerificationRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IntakeStepResponse:
    loan = await _loan_or_404(
        db, current_user, payload.loan_id, "Loan not found. Please complete step 1 first."
    )
    try:
        await loan_intake.save_identity_verification(db, current_user, loan, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    return IntakeStepResponse(
        loan_id=loan.id,
        current_step=current_user.current_step,
        message="Identity verification saved successfully",
    )


@router.post("/guarantor-info", response_model=IntakeStepResponse)
async def save_guarantor_info(
    payload: GuarantorInfoRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IntakeStepResponse:
    loan = await _loan_or_404(
        db, current_user, payload.loan_id, "Loan not found. Please complete previous steps first."
    )
    try:
        await loan_intake.save_guarantor(db, current_user, loan, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    return IntakeStepResponse(
        loan_id=loan.id,
        current_step=current_user.current_step,
        message="Guarantor information saved successfully",
    )


@router.post("/bank-details", response_model=IntakeStepResponse)
async def save_bank_details(
    payload: BankDetailsRequest,
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> IntakeStepResponse:
    loan = await _loan_or_404(
        db, current_user, payload.loan_id, "Loan not found. Please complete previous steps first."
    )
    try:
        await loan_intake.save_bank_details(db, current_user, loan, payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    return IntakeStepResponse(
        loan_id=loan.id,
        current_step=current_user.current_step,
        message="Bank details saved successfully",
    )


@router.get("/review", response_model=ApplicationReview, summary="Compile the application for review")
async def review_application(
    loan_id: UUID | None = Query(default=None),
    current_user: User = Depends(deps.get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApplicationReview:
    loan = await _loan_or_404(
        db,
        current_user,
        loan_id,
        "Loan application not found. Please complete previous steps.",
    )
    try:
        return loan_intake.build_review(current_user, loan)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
