from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.settings import settings
from app.models.loan import Loan
from app.models.user import User
from app.schemas.admin import (
    AdminLoanDetail,
    AdminLoanListItem,
    AdminLoanListResponse,
    LoanStats,
    Pagination,
)
from app.schemas.loan import LoanStatus
from app.services import admin_cache, ledger
from app.services.audit import model_snapshot, record_audit_log, serialize_for_audit


DISBURSED_STATUSES = (LoanStatus.APPROVED.value, LoanStatus.REPAID.value)


async def compute_stats(db: AsyncSession) -> LoanStats:
    cached = await admin_cache.get_cached("stats", LoanStats)
    if cached:
        return cached

    counts_stmt = select(Loan.status, func.count(Loan.id)).group_by(Loan.status)
    counts = {status: count for status, count in (await db.execute(counts_stmt)).all()}
    disbursed_stmt = select(func.coalesce(func.sum(Loan.amount), 0)).where(
        Loan.status.in_(DISBURSED_STATUSES)
    )
    total_disbursed = (await db.execute(disbursed_stmt)).scalar_one()

    stats = LoanStats(
        total=sum(counts.values()),
        pending=counts.get(LoanStatus.PENDING.value, 0),
        approved=counts.get(LoanStatus.APPROVED.value, 0),
        rejected=counts.get(LoanStatus.REJECTED.value, 0),
        repaid=counts.get(LoanStatus.REPAID.value, 0),
        total_disbursed=Decimal(str(total_disbursed)),
    )
    await admin_cache.set_cached("stats", stats, admin_cache.stats_ttl())
    return stats


def _listing_conditions(status: LoanStatus | None, search: str | None) -> list:
    conditions = []
    if status is not None:
        conditions.append(Loan.status == status.value)
    if search:
        pattern = f"%{search.lower()}%"
        conditions.append(
            or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern))
        )
    return conditions


async def list_loans(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    status: LoanStatus | None = None,
) -> AdminLoanListResponse:
    stats = await compute_stats(db)

    cache_name = f"list:{page}:{limit}:{search or ''}:{status.value if status else ''}"
    cached = await admin_cache.get_cached(cache_name, AdminLoanListResponse)
    if cached:
        return cached.model_copy(update={"stats": stats})

    conditions = _listing_conditions(status, search)
    count_stmt = select(func.count(Loan.id)).join(User, User.id == Loan.user_id).where(*conditions)
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = (
        select(Loan)
        .join(User, User.id == Loan.user_id)
        .options(selectinload(Loan.user))
        .where(*conditions)
        .order_by(Loan.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    loans = (await db.execute(stmt)).scalars().all()

    response = AdminLoanListResponse(
        loans=[AdminLoanListItem.model_validate(loan) for loan in loans],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
        ),
        stats=stats,
    )
    await admin_cache.set_cached(cache_name, response, admin_cache.listing_ttl())
    return response


async def get_loan_for_admin(db: AsyncSession, loan_id: UUID) -> Loan | None:
    stmt = (
        select(Loan)
        .options(
            selectinload(Loan.user),
            selectinload(Loan.identity_verification),
            selectinload(Loan.guarantor),
            selectinload(Loan.bank_details),
            selectinload(Loan.repayments),
        )
        .where(Loan.id == loan_id)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_loan_detail(db: AsyncSession, loan_id: UUID) -> AdminLoanDetail | None:
    cache_name = f"detail:{loan_id}"
    cached = await admin_cache.get_cached(cache_name, AdminLoanDetail)
    if cached:
        return cached

    loan = await get_loan_for_admin(db, loan_id)
    if loan is None:
        return None
    total_repaid = await ledger.sum_completed_repayments(db, loan.id)
    detail = AdminLoanDetail.model_validate(loan).model_copy(update={"total_repaid": total_repaid})
    await admin_cache.set_cached(cache_name, detail, admin_cache.detail_ttl())
    return detail


async def _decide(
    db: AsyncSession,
    loan: Loan,
    target: LoanStatus,
    *,
    actor_id,
    action: str,
    **values,
) -> Loan:
    if loan.status != LoanStatus.PENDING.value:
        raise ValueError("Loan is not pending")
    old_snapshot = model_snapshot(loan)
    applied = await ledger.update_loan_status(db, loan, target, **values)
    if not applied:
        raise ValueError("Loan is not pending")
    loan.status = target.value
    for key, value in values.items():
        setattr(loan, key, value)
    record_audit_log(
        db,
        actor_id=actor_id,
        action=action,
        resource_type="loan",
        resource_id=str(loan.id),
        old_value=old_snapshot,
        new_value={**old_snapshot, "status": target.value, **serialize_for_audit(values)},
    )
    return loan


async def approve_loan(db: AsyncSession, loan: Loan, *, actor_id) -> Loan:
    now = datetime.now(timezone.utc)
    return await _decide(
        db,
        loan,
        LoanStatus.APPROVED,
        actor_id=actor_id,
        action="loan.approved",
        approval_date=now,
        due_date=now + timedelta(days=settings.repayment_period_days),
    )


async def reject_loan(db: AsyncSession, loan: Loan, *, actor_id) -> Loan:
    return await _decide(db, loan, LoanStatus.REJECTED, actor_id=actor_id, action="loan.rejected")
