from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.loan import Loan
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.auth import UserOut
from app.schemas.dashboard import DashboardResponse, LoanSummary
from app.schemas.loan import LoanDTO, RepaymentDTO
from app.schemas.payments import TransactionDTO, WalletDTO
from app.services import ledger

RECENT_TRANSACTIONS_LIMIT = 10


async def build_dashboard(db: AsyncSession, user: User) -> DashboardResponse:
    wallet = await ledger.get_wallet_for_user(db, user.id)

    loan_stmt = (
        select(Loan)
        .options(selectinload(Loan.repayments))
        .where(Loan.user_id == user.id)
        .order_by(Loan.created_at.desc())
        .limit(1)
    )
    loan = (await db.execute(loan_stmt)).scalars().first()
    loan_summary = None
    if loan is not None:
        total_repaid = await ledger.sum_completed_repayments(db, loan.id)
        outstanding = max(Decimal(str(loan.total_repayment)) - total_repaid, Decimal("0"))
        loan_summary = LoanSummary(
            loan=LoanDTO.model_validate(loan),
            total_repaid=total_repaid,
            outstanding=outstanding,
            repayments=[RepaymentDTO.model_validate(item) for item in loan.repayments],
        )

    tx_stmt = (
        select(Transaction)
        .where(Transaction.user_id == user.id)
        .order_by(Transaction.created_at.desc())
        .limit(RECENT_TRANSACTIONS_LIMIT)
    )
    transactions = (await db.execute(tx_stmt)).scalars().all()

    return DashboardResponse(
        user=UserOut.model_validate(user),
        wallet=WalletDTO.model_validate(wallet) if wallet else None,
        loan_summary=loan_summary,
        recent_transactions=[TransactionDTO.model_validate(item) for item in transactions],
    )
