from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import LedgerError
from app.models.loan import Loan
from app.models.repayment import Repayment
from app.models.transaction import Transaction
from app.models.wallet import Wallet
from app.schemas.loan import LoanStatus, RepaymentStatus
from app.schemas.payments import TransactionStatus
from app.services.transitions import ensure_transition, sources_for


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


async def find_transaction_by_reference(db: AsyncSession, reference: str) -> Transaction | None:
    stmt = select(Transaction).where(Transaction.reference == reference)
    return (await db.execute(stmt)).scalar_one_or_none()


async def update_transaction_status(
    db: AsyncSession,
    transaction: Transaction,
    status: TransactionStatus,
    raw_payload: Any,
) -> bool:
    """Compare-and-set the transaction status.

    Returns False when the row is no longer in a state that can move to
    ``status`` (another delivery won the race).
    """
    ensure_transition(transaction.status, status)
    stmt = (
        update(Transaction)
        .where(
            Transaction.id == transaction.id,
            Transaction.status.in_(sources_for(status)),
        )
        .values(status=status.value, provider_payload=raw_payload)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def find_repayment_by_reference_and_loan(
    db: AsyncSession, reference: str, loan_id: UUID
) -> Repayment | None:
    stmt = select(Repayment).where(
        Repayment.transaction_ref == reference,
        Repayment.loan_id == loan_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def find_repayment_by_reference(db: AsyncSession, reference: str) -> Repayment | None:
    stmt = select(Repayment).where(Repayment.transaction_ref == reference)
    return (await db.execute(stmt)).scalar_one_or_none()


async def mark_repayment_completed(db: AsyncSession, repayment: Repayment) -> bool:
    if repayment.status == RepaymentStatus.COMPLETED.value:
        return False
    ensure_transition(repayment.status, RepaymentStatus.COMPLETED)
    stmt = (
        update(Repayment)
        .where(
            Repayment.id == repayment.id,
            Repayment.status.in_(sources_for(RepaymentStatus.COMPLETED)),
        )
        .values(
            status=RepaymentStatus.COMPLETED.value,
            completed_at=datetime.now(timezone.utc),
        )
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def mark_repayment_failed(db: AsyncSession, repayment: Repayment) -> bool:
    ensure_transition(repayment.status, RepaymentStatus.FAILED)
    stmt = (
        update(Repayment)
        .where(
            Repayment.id == repayment.id,
            Repayment.status.in_(sources_for(RepaymentStatus.FAILED)),
        )
        .values(status=RepaymentStatus.FAILED.value)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def sum_completed_repayments(db: AsyncSession, loan_id: UUID) -> Decimal:
    stmt = select(func.coalesce(func.sum(Repayment.amount), 0)).where(
        Repayment.loan_id == loan_id,
        Repayment.status == RepaymentStatus.COMPLETED.value,
    )
    return _as_decimal((await db.execute(stmt)).scalar_one())


async def get_loan(db: AsyncSession, loan_id: UUID) -> Loan | None:
    stmt = select(Loan).where(Loan.id == loan_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def update_loan_status(
    db: AsyncSession,
    loan: Loan,
    status: LoanStatus,
    **values: Any,
) -> bool:
    """Move the loan along its state machine; False if it is already at ``status``."""
    if loan.status == status.value:
        return False
    ensure_transition(loan.status, status)
    stmt = (
        update(Loan)
        .where(Loan.id == loan.id, Loan.status.in_(sources_for(status)))
        .values(status=status.value, **values)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def credit_wallet(db: AsyncSession, user_id: UUID, amount: Decimal) -> None:
    """Atomically add ``amount`` to the user's wallet balance."""
    amount = _as_decimal(amount)
    if amount <= 0:
        raise ValueError("Wallet credit must be positive")
    stmt = (
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(balance=Wallet.balance + amount)
    )
    result = await db.execute(stmt)
    if result.rowcount != 1:
        raise LedgerError(f"No wallet found for user {user_id}")


async def get_wallet_for_user(db: AsyncSession, user_id: UUID) -> Wallet | None:
    stmt = select(Wallet).where(Wallet.user_id == user_id)
    return (await db.execute(stmt)).scalar_one_or_none()
