from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.schemas.auth import UserOut
from app.schemas.loan import (
    BankDetailsDTO,
    GuarantorDTO,
    IdentityVerificationDTO,
    LoanStatus,
    RepaymentDTO,
)


class LoanBorrower(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    full_name: Optional[str] = None
    email: str
    phone: Optional[str] = None


class AdminLoanListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    interest_rate: Decimal
    total_repayment: Decimal
    status: LoanStatus
    application_date: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    user: LoanBorrower


class LoanStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    repaid: int
    total_disbursed: Decimal


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdminLoanListResponse(BaseModel):
    loans: list[AdminLoanListItem]
    pagination: Pagination
    stats: LoanStats


class AdminLoanDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: Decimal
    interest_rate: Decimal
    total_repayment: Decimal
    status: LoanStatus
    application_date: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    user: UserOut
    identity_verification: Optional[IdentityVerificationDTO] = None
    guarantor: Optional[GuarantorDTO] = None
    bank_details: Optional[BankDetailsDTO] = None
    repayments: list[RepaymentDTO] = []
    total_repaid: Decimal = Decimal("0")
