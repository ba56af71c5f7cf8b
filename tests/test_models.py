from uuid import uuid4

import pytest
from sqlalchemy import select, text

from conftest import make_loan, make_user, make_wallet, seed

from app.models import BankDetails, IdentityVerification, User
from app.models.types import EncryptedString


def test_encrypted_string_round_trip() -> None:
    column_type = EncryptedString(secret="unit-test-secret")
    token = column_type.process_bind_param("12345678901", dialect=None)

    assert isinstance(token, bytes)
    assert b"12345678901" not in token
    assert column_type.process_result_value(token, dialect=None) == "12345678901"
    assert column_type.process_bind_param(None, dialect=None) is None
    assert column_type.process_result_value(None, dialect=None) is None


def test_encrypted_string_rejects_foreign_ciphertext() -> None:
    token = EncryptedString(secret="one-secret").process_bind_param("0123456789", dialect=None)

    with pytest.raises(ValueError):
        EncryptedString(secret="another-secret").process_result_value(token, dialect=None)


def test_user_role_helpers() -> None:
    assert make_user(role="ADMIN").is_admin is True
    assert make_user(role="USER").is_admin is False


def test_wallet_virtual_account_flag() -> None:
    user = make_user()
    assert make_wallet(user=user).has_virtual_account is False
    assert make_wallet(user=user, account_number="9930000001").has_virtual_account is True


@pytest.mark.asyncio
async def test_identity_and_bank_numbers_are_encrypted_at_rest(session_factory) -> None:
    user = make_user()
    loan = make_loan(user=user, status="PENDING")
    await seed(
        session_factory,
        user,
        loan,
        IdentityVerification(id=uuid4(), loan_id=loan.id, bvn="12345678901", nin="10987654321"),
        BankDetails(
            id=uuid4(),
            loan_id=loan.id,
            bank_name="GTBank",
            account_number="0123456789",
            account_name="Ada Obi",
        ),
    )

    async with session_factory() as db:
        raw_bvn = (await db.execute(text("SELECT bvn FROM identity_verifications"))).scalar_one()
        raw_account = (await db.execute(text("SELECT account_number FROM bank_details"))).scalar_one()
        identity = (await db.execute(select(IdentityVerification))).scalar_one()
        bank = (await db.execute(select(BankDetails))).scalar_one()

    assert b"12345678901" not in bytes(raw_bvn)
    assert b"0123456789" not in bytes(raw_account)
    assert identity.bvn == "12345678901"
    assert identity.nin == "10987654321"
    assert bank.account_number == "0123456789"


@pytest.mark.asyncio
async def test_defaults_for_new_user(session_factory) -> None:
    user = User(email="new@example.com", hashed_password="x")
    await seed(session_factory, user)

    async with session_factory() as db:
        stored = (await db.execute(select(User).where(User.email == "new@example.com"))).scalar_one()

    assert stored.role == "USER"
    assert stored.current_step == 1
    assert stored.application_complete is False
    assert stored.is_active is True
    assert stored.created_at is not None
