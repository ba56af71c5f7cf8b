from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from conftest import (
    FakeResult,
    entity_handler,
    make_loan,
    make_repayment,
    make_user,
    seed,
    sequence_handler,
)

from app.core.settings import settings
from app.models import AuditLog, Guarantor, Loan
from app.schemas.loan import LoanStatus
from app.services import admin_cache, ledger, loan_admin


async def _portfolio(factory):
    ada = make_user(email="ada@example.com", full_name="Ada Obi")
    bola = make_user(email="bola@example.com", full_name="Bola Tinubu")
    loans = [
        make_loan(user=ada, status="PENDING", amount=Decimal("20000.00"), total_repayment=Decimal("21000.00")),
        make_loan(user=ada, status="APPROVED", amount=Decimal("1000.00")),
        make_loan(user=bola, status="REPAID", amount=Decimal("3000.00"), total_repayment=Decimal("3150.00")),
        make_loan(user=bola, status="REJECTED", amount=Decimal("9000.00"), total_repayment=Decimal("9450.00")),
    ]
    await seed(factory, ada, bola, *loans)
    return ada, bola, loans


@pytest.mark.asyncio
async def test_stats_count_statuses_and_disbursed_principal(session_factory) -> None:
    await _portfolio(session_factory)

    async with session_factory() as db:
        stats = await loan_admin.compute_stats(db)

    assert stats.total == 4
    assert (stats.pending, stats.approved, stats.rejected, stats.repaid) == (1, 1, 1, 1)
    assert stats.total_disbursed == Decimal("4000.00")


@pytest.mark.asyncio
async def test_listing_filters_searches_and_paginates(session_factory) -> None:
    ada, _, _ = await _portfolio(session_factory)

    async with session_factory() as db:
        by_name = await loan_admin.list_loans(db, search="ADA")
        by_email = await loan_admin.list_loans(db, search="bola@")
        pending = await loan_admin.list_loans(db, status=LoanStatus.PENDING)
        first_page = await loan_admin.list_loans(db, page=1, limit=3)
        second_page = await loan_admin.list_loans(db, page=2, limit=3)

    assert {item.user.id for item in by_name.loans} == {ada.id}
    assert by_name.pagination.total == 2
    assert len(by_email.loans) == 2
    assert [item.status for item in pending.loans] == [LoanStatus.PENDING]
    assert first_page.pagination.total_pages == 2
    assert len(first_page.loans) == 3
    assert len(second_page.loans) == 1
    assert first_page.stats.total == 4


@pytest.mark.asyncio
async def test_detail_includes_intake_records_and_total_repaid(session_factory) -> None:
    user = make_user()
    loan = make_loan(user=user)
    await seed(
        session_factory,
        user,
        loan,
        Guarantor(
            loan_id=loan.id,
            full_name="Chidi Obi",
            phone="08087654321",
            address="4 Allen Avenue, Ikeja",
            relationship_to_borrower="Brother",
        ),
        make_repayment(loan=loan, reference="r_done", amount=Decimal("400.00"), status="COMPLETED"),
        make_repayment(loan=loan, reference="r_wait", amount=Decimal("100.00")),
    )

    async with session_factory() as db:
        detail = await loan_admin.get_loan_detail(db, loan.id)
        missing = await loan_admin.get_loan_detail(db, uuid4())

    assert detail.user.email == user.email
    assert detail.guarantor.relationship == "Brother"
    assert detail.identity_verification is None
    assert len(detail.repayments) == 2
    assert detail.total_repaid == Decimal("400.00")
    assert missing is None


@pytest.mark.asyncio
async def test_cached_detail_survives_round_trip(session_factory, fake_redis) -> None:
    user = make_user()
    loan = make_loan(user=user)
    await seed(
        session_factory,
        user,
        loan,
        Guarantor(
            loan_id=loan.id,
            full_name="Chidi Obi",
            phone="08087654321",
            address="4 Allen Avenue, Ikeja",
            relationship_to_borrower="Sister",
        ),
    )

    async with session_factory() as db:
        first = await loan_admin.get_loan_detail(db, loan.id)
    async with session_factory() as db:
        second = await loan_admin.get_loan_detail(db, loan.id)

    assert any(key.endswith(f"detail:{loan.id}") for key in fake_redis.store)
    assert second.model_dump() == first.model_dump()


@pytest.mark.asyncio
async def test_approve_sets_dates_and_audits(session_factory) -> None:
    admin = make_user(email="admin@example.com", role="ADMIN")
    borrower = make_user()
    loan = make_loan(user=borrower, status="PENDING")
    await seed(session_factory, admin, borrower, loan)

    async with session_factory() as db:
        found = await ledger.get_loan(db, loan.id)
        approved = await loan_admin.approve_loan(db, found, actor_id=admin.id)
        await db.commit()

    assert approved.status == "APPROVED"
    assert approved.due_date - approved.approval_date == timedelta(days=settings.repayment_period_days)
    async with session_factory() as db:
        stored = (await db.execute(select(Loan).where(Loan.id == loan.id))).scalar_one()
        entry = (await db.execute(select(AuditLog))).scalar_one()
    assert stored.status == "APPROVED"
    assert stored.approval_date is not None
    assert entry.action == "loan.approved"
    assert entry.actor_id == admin.id
    assert entry.old_value["status"] == "PENDING"
    assert entry.new_value["status"] == "APPROVED"


@pytest.mark.asyncio
async def test_decisions_only_apply_to_pending_loans(session_factory) -> None:
    user = make_user()
    loan = make_loan(user=user, status="APPROVED")
    await seed(session_factory, user, loan)

    async with session_factory() as db:
        found = await ledger.get_loan(db, loan.id)
        with pytest.raises(ValueError, match="Loan is not pending"):
            await loan_admin.reject_loan(db, found, actor_id=None)


def test_list_route_returns_stats_and_uses_cache(admin_client, fake_db) -> None:
    borrower = make_user()
    loan = make_loan(user=borrower, status="PENDING")
    loan.user = borrower
    fake_db.on_execute(
        sequence_handler(
            [
                FakeResult(rows=[("PENDING", 1)]),
                FakeResult(scalar=Decimal("0")),
                FakeResult(scalar=1),
                FakeResult(items=[loan]),
            ]
        )
    )

    first = admin_client.get("/api/v1/admin/loans?page=1&limit=10")
    executed = len(fake_db.executed)
    second = admin_client.get("/api/v1/admin/loans?page=1&limit=10")

    assert first.status_code == 200
    data = first.json()["data"]
    assert data["stats"]["pending"] == 1
    assert data["pagination"] == {"page": 1, "limit": 10, "total": 1, "total_pages": 1}
    assert data["loans"][0]["user"]["email"] == borrower.email
    assert second.status_code == 200
    assert len(fake_db.executed) == executed
    assert second.json()["data"] == data


def test_list_route_validates_query(admin_client) -> None:
    assert admin_client.get("/api/v1/admin/loans?limit=101").status_code == 422
    assert admin_client.get("/api/v1/admin/loans?status=ARCHIVED").status_code == 422


def test_borrower_cannot_use_admin_routes(client) -> None:
    assert client.get("/api/v1/admin/loans").status_code == 403
    assert client.post(f"/api/v1/admin/loans/{uuid4()}/approve").status_code == 403


def test_detail_route_unknown_loan(admin_client) -> None:
    response = admin_client.get(f"/api/v1/admin/loans/{uuid4()}")

    assert response.status_code == 404


def test_approve_route_invalidates_cache(admin_client, fake_db, fake_redis, admin_user) -> None:
    loan = make_loan(user=make_user(), status="PENDING")
    fake_db.on_execute(entity_handler(Loan, FakeResult(scalar=loan)))

    response = admin_client.post(f"/api/v1/admin/loans/{loan.id}/approve")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "APPROVED"
    assert data["due_date"] is not None
    assert fake_db.committed
    assert fake_redis.store[admin_cache.GENERATION_KEY] == "1"
    audit = next(obj for obj in fake_db.added if isinstance(obj, AuditLog))
    assert audit.action == "loan.approved"
    assert audit.actor_id == admin_user.id


def test_reject_route_refuses_decided_loan(admin_client, fake_db) -> None:
    loan = make_loan(user=make_user(), status="REJECTED")
    fake_db.on_execute(entity_handler(Loan, FakeResult(scalar=loan)))

    response = admin_client.post(f"/api/v1/admin/loans/{loan.id}/reject")

    assert response.status_code == 400
    assert response.json()["message"] == "Loan is not pending"
    assert not fake_db.committed


def test_approve_route_unknown_loan(admin_client) -> None:
    assert admin_client.post(f"/api/v1/admin/loans/{uuid4()}/approve").status_code == 404
