from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.payments import (
    FundWalletRequest,
    PaymentInitResponse,
    RepayRequest,
    VerifyReferenceResponse,
    WalletDTO,
)
from app.services import admin_cache, ledger, reconciliation, repayments, wallets
from app.services.paystack import PaystackClient

router = APIRouter(tags=["payments"])


@router.post(
    "/paystack/repay",
    response_model=PaymentInitResponse,
    summary="Start a hosted payment towards an approved loan",
)
async def repay_loan(
    payload: RepayRequest,
    current_user: User = Depends(deps.get_current_user),
    gateway: PaystackClient = Depends(deps.get_gateway),
    db: AsyncSession = Depends(get_db),
) -> PaymentInitResponse:
    loan = await ledger.get_loan(db, payload.loan_id)
    if not loan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    try:
        return await repayments.initiate_repayment(db, gateway, current_user, loan, payload.amount)
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post(
    "/paystack/create-wallet",
    response_model=WalletDTO,
    summary="Assign a dedicated virtual account to the user's wallet",
)
async def create_wallet(
    response: Response,
    current_user: User = Depends(deps.get_current_user),
    gateway: PaystackClient = Depends(deps.get_gateway),
    db: AsyncSession = Depends(get_db),
) -> WalletDTO:
    wallet, created = await wallets.create_virtual_account(db, gateway, current_user)
    if created:
        await db.commit()
        response.status_code = status.HTTP_201_CREATED
    return WalletDTO.model_validate(wallet)


@router.post(
    "/paystack/fund-wallet",
    response_model=PaymentInitResponse,
    summary="Start a hosted payment that credits the wallet",
)
async def fund_wallet(
    payload: FundWalletRequest,
    current_user: User = Depends(deps.get_current_user),
    gateway: PaystackClient = Depends(deps.get_gateway),
    db: AsyncSession = Depends(get_db),
) -> PaymentInitResponse:
    return await wallets.fund_wallet(db, gateway, current_user, payload.amount)


@router.post(
    "/payments/verify/{reference}",
    response_model=VerifyReferenceResponse,
    summary="Poll the provider and reconcile a payment reference",
)
async def verify_reference(
    reference: str,
    current_user: User = Depends(deps.get_current_user),
    gateway: PaystackClient = Depends(deps.get_gateway),
    db: AsyncSession = Depends(get_db),
) -> VerifyReferenceResponse:
    transaction = await ledger.find_transaction_by_reference(db, reference)
    if not transaction or (transaction.user_id != current_user.id and not current_user.is_admin):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")

    try:
        provider_status, result = await reconciliation.reconcile_reference(db, gateway, reference)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    if result.admin_view_changed:
        await admin_cache.invalidate()
    return VerifyReferenceResponse(
        reference=reference,
        provider_status=provider_status,
        outcome=result.outcome.value,
    )
