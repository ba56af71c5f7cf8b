from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator


class LoanStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REPAID = "REPAID"


class RepaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PersonalInfoRequest(BaseModel):
    full_name: str = Field(min_length=2)
    email: EmailStr
    phone: str = Field(min_length=10)
    date_of_birth: date
    address: str = Field(min_length=10)
    loan_amount: Decimal = Field(gt=0)


class IdentityVerificationRequest(BaseModel):
    loan_id: Optional[UUID] = None
    bvn: str
    nin: str
    face_photo_url: Optional[str] = None
    passport_url: Optional[str] = None

    @field_validator("bvn", "nin")
    @classmethod
    def _eleven_digits(cls, value: str) -> str:
        cleaned = value.strip()
        if len(cleaned) != 11 or not cleaned.isdigit():
            raise ValueError("must be exactly 11 digits")
        return cleaned


class GuarantorInfoRequest(BaseModel):
    loan_id: Optional[UUID] = None
    full_name: str = Field(min_length=2)
    phone: str = Field(min_length=10)
    address: str = Field(min_length=10)
    relationship: str = Field(min_length=2)
    photo_url: Optional[str] = None


class BankDetailsRequest(BaseModel):
    loan_id: Optional[UUID] = None
    bank_name: str = Field(min_length=2)
    account_number: str
    account_name: str = Field(min_length=2)

    @field_validator("account_number")
    @classmethod
    def _nuban(cls, value: str) -> str:
        cleaned = value.strip()
        if len(cleaned) != 10 or not cleaned.isdigit():
            raise ValueError("must be a 10 digit account number")
        return cleaned


class UpdateStepRequest(BaseModel):
    step: int = Field(ge=1, le=5)


class RepaymentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    amount: Decimal
    transaction_ref: str
    status: RepaymentStatus
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class LoanDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    amount: Decimal
    interest_rate: Decimal
    total_repayment: Decimal
    status: LoanStatus
    application_date: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class IdentityVerificationDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bvn: str
    nin: str
    face_photo_url: Optional[str] = None
    passport_url: Optional[str] = None


class GuarantorDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    full_name: str
    phone: str
    address: str
    relationship: str = Field(validation_alias=AliasChoices("relationship_to_borrower", "relationship"))
    photo_url: Optional[str] = None


class BankDetailsDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bank_name: str
    account_number: str
    account_name: str


class ReviewApplicant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    full_name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None


class ApplicationReview(BaseModel):
    user: ReviewApplicant
    loan: LoanDTO
    identity: IdentityVerificationDTO
    guarantor: GuarantorDTO
    bank_details: BankDetailsDTO


class IntakeStepResponse(BaseModel):
    loan_id: UUID
    current_step: int
    message: str
