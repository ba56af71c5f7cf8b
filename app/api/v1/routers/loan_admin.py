from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import Loan, User
from app.schemas.admin import AdminLoanDetail, AdminLoanListResponse
from app.schemas.loan import LoanDTO, LoanStatus
from app.services import admin_cache, ledger, loan_admin

router = APIRouter(prefix="/admin/loans", tags=["loan-admin"])


async def _get_loan_or_404(db: AsyncSession, loan_id: UUID) -> Loan:
    loan = await ledger.get_loan(db, loan_id)
    if not loan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    return loan


@router.get(
    "",
    response_model=AdminLoanListResponse,
    summary="List loans with portfolio stats",
)
async def list_loans(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str | None = Query(default=None, max_length=255),
    loan_status: LoanStatus | None = Query(default=None, alias="status"),
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminLoanListResponse:
    return await loan_admin.list_loans(
        db,
        page=page,
        limit=limit,
        search=search.strip() if search else None,
        status=loan_status,
    )


@router.get(
    "/{loan_id}",
    response_model=AdminLoanDetail,
    summary="Get loan detail with borrower, intake data and repayments",
)
async def get_loan(
    loan_id: UUID,
    _: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminLoanDetail:
    detail = await loan_admin.get_loan_detail(db, loan_id)
    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    return detail


@router.post("/{loan_id}/approve", response_model=LoanDTO, summary="Approve a pending loan")
async def approve_loan(
    loan_id: UUID,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> LoanDTO:
    loan = await _get_loan_or_404(db, loan_id)
    try:
        loan = await loan_admin.approve_loan(db, loan, actor_id=current_user.id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    await admin_cache.invalidate()
    return LoanDTO.model_validate(loan)


@router.post("/{loan_id}/reject", response_model=LoanDTO, summary="Reject a pending loan")
async def reject_loan(
    loan_id: UUID,
    current_user: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> LoanDTO:
    loan = await _get_loan_or_404(db, loan_id)
    try:
        loan = await loan_admin.reject_loan(db, loan, actor_id=current_user.id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    await db.commit()
    await admin_cache.invalidate()
    return LoanDTO.model_validate(loan)
