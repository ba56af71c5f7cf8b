from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.settings import settings
from app.models.bank_details import BankDetails
from app.models.guarantor import Guarantor
from app.models.identity_verification import IdentityVerification
from app.models.loan import Loan
from app.models.user import User
from app.schemas.loan import (
    ApplicationReview,
    BankDetailsDTO,
    BankDetailsRequest,
    GuarantorDTO,
    GuarantorInfoRequest,
    IdentityVerificationDTO,
    IdentityVerificationRequest,
    LoanDTO,
    LoanStatus,
    PersonalInfoRequest,
    ReviewApplicant,
)


TWOPLACES = Decimal("0.01")

STEP_PERSONAL_INFO = 1
STEP_IDENTITY = 2
STEP_GUARANTOR = 3
STEP_BANK_DETAILS = 4
STEP_REVIEW = 5


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_total_repayment(amount, interest_rate) -> Decimal:
    """Flat interest: principal plus ``interest_rate`` percent of it."""
    principal = _as_decimal(amount)
    rate = _as_decimal(interest_rate)
    total = principal + principal * rate / Decimal("100")
    return total.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _with_intake_relations(stmt):
    return stmt.options(
        selectinload(Loan.identity_verification),
        selectinload(Loan.guarantor),
        selectinload(Loan.bank_details),
    )


async def get_latest_loan(db: AsyncSession, user_id: UUID) -> Loan | None:
    stmt = _with_intake_relations(
        select(Loan).where(Loan.user_id == user_id).order_by(Loan.created_at.desc()).limit(1)
    )
    return (await db.execute(stmt)).scalars().first()


async def resolve_loan(db: AsyncSession, user: User, loan_id: UUID | None = None) -> Loan | None:
    """The borrower's loan by id, or their most recent one; never another user's loan."""
    if loan_id is None:
        return await get_latest_loan(db, user.id)
    stmt = _with_intake_relations(select(Loan).where(Loan.id == loan_id, Loan.user_id == user.id))
    return (await db.execute(stmt)).scalar_one_or_none()


def _ensure_editable(loan: Loan) -> None:
    if loan.status != LoanStatus.PENDING.value:
        raise ValueError("Loan application can no longer be edited")


async def _email_taken(db: AsyncSession, email: str, user_id: UUID) -> bool:
    stmt = select(User.id).where(User.email == email, User.id != user_id)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def save_personal_info(db: AsyncSession, user: User, payload: PersonalInfoRequest) -> Loan:
    amount = _as_decimal(payload.loan_amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    if amount < settings.loan_min_amount or amount > settings.loan_max_amount:
        raise ValueError(
            f"Loan amount must be between {settings.loan_min_amount} and {settings.loan_max_amount}"
        )
    email = str(payload.email).lower()
    if email != user.email and await _email_taken(db, email, user.id):
        raise ValueError("Email already in use")

    user.full_name = payload.full_name
    user.email = email
    user.phone = payload.phone
    user.date_of_birth = payload.date_of_birth
    user.address = payload.address
    user.current_step = STEP_IDENTITY
    db.add(user)

    interest_rate = settings.default_interest_rate_percent
    total_repayment = compute_total_repayment(amount, interest_rate)

    # Only a still-pending application is reused; decided loans stay as they were.
    loan = await get_latest_loan(db, user.id)
    if loan is not None and loan.status == LoanStatus.PENDING.value:
        loan.amount = amount
        loan.interest_rate = interest_rate
        loan.total_repayment = total_repayment
    else:
        loan = Loan(
            user_id=user.id,
            amount=amount,
            interest_rate=interest_rate,
            total_repayment=total_repayment,
            status=LoanStatus.PENDING.value,
        )
    db.add(loan)
    await db.flush()
    return loan


async def save_identity_verification(
    db: AsyncSession, user: User, loan: Loan, payload: IdentityVerificationRequest
) -> IdentityVerification:
    _ensure_editable(loan)
    identity = loan.identity_verification
    if identity is None:
        identity = IdentityVerification(loan_id=loan.id)
    identity.bvn = payload.bvn
    identity.nin = payload.nin
    identity.face_photo_url = payload.face_photo_url
    identity.passport_url = payload.passport_url
    db.add(identity)

    user.current_step = STEP_GUARANTOR
    db.add(user)
    await db.flush()
    return identity


async def save_guarantor(
    db: AsyncSession, user: User, loan: Loan, payload: GuarantorInfoRequest
) -> Guarantor:
    _ensure_editable(loan)
    guarantor = loan.guarantor
    if guarantor is None:
        guarantor = Guarantor(loan_id=loan.id)
    guarantor.full_name = payload.full_name
    guarantor.phone = payload.phone
    guarantor.address = payload.address
    guarantor.relationship_to_borrower = payload.relationship
    guarantor.photo_url = payload.photo_url
    db.add(guarantor)

    user.current_step = STEP_BANK_DETAILS
    db.add(user)
    await db.flush()
    return guarantor


async def save_bank_details(
    db: AsyncSession, user: User, loan: Loan, payload: BankDetailsRequest
) -> BankDetails:
    _ensure_editable(loan)
    details = loan.bank_details
    if details is None:
        details = BankDetails(loan_id=loan.id)
    details.bank_name = payload.bank_name
    details.account_number = payload.account_number
    details.account_name = payload.account_name
    db.add(details)

    user.current_step = STEP_REVIEW
    db.add(user)
    await db.flush()
    return details


def build_review(user: User, loan: Loan) -> ApplicationReview:
    """Assemble the review payload; each missing step is reported in order."""
    if loan.identity_verification is None:
        raise ValueError("Identity verification not completed. Please complete step 2.")
    if loan.guarantor is None:
        raise ValueError("Guarantor information not provided. Please complete step 3.")
    if loan.bank_details is None:
        raise ValueError("Bank details not provided. Please complete step 4.")
    return ApplicationReview(
        user=ReviewApplicant.model_validate(user),
        loan=LoanDTO.model_validate(loan),
        identity=IdentityVerificationDTO.model_validate(loan.identity_verification),
        guarantor=GuarantorDTO.model_validate(loan.guarantor),
        bank_details=BankDetailsDTO.model_validate(loan.bank_details),
    )


async def update_step(db: AsyncSession, user: User, step: int) -> User:
    user.current_step = step
    db.add(user)
    await db.flush()
    return user


async def complete_application(db: AsyncSession, user: User) -> User:
    loan = await get_latest_loan(db, user.id)
    if loan is None:
        raise ValueError("Loan application not found. Please complete previous steps.")
    build_review(user, loan)
    user.application_complete = True
    user.current_step = STEP_REVIEW
    db.add(user)
    await db.flush()
    return user
