from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    REPAYMENT = "REPAYMENT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class WebhookEventType(str, Enum):
    CHARGE_SUCCESS = "charge.success"
    TRANSFER_SUCCESS = "transfer.success"
    TRANSFER_FAILED = "transfer.failed"
    DEDICATED_ACCOUNT_ASSIGNED = "dedicatedaccount.assign.success"


class RepaymentMetadata(BaseModel):
    type: Literal["repayment"]
    loan_id: UUID = Field(alias="loanId")
    user_id: Optional[UUID] = Field(default=None, alias="userId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DepositMetadata(BaseModel):
    type: Literal["deposit"]
    user_id: UUID = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


PaymentMetadata = Annotated[Union[RepaymentMetadata, DepositMetadata], Field(discriminator="type")]

_metadata_adapter: TypeAdapter = TypeAdapter(PaymentMetadata)


def parse_payment_metadata(raw: Any) -> RepaymentMetadata | DepositMetadata | None:
    """Validate the provider-echoed metadata bag; None when it has no recognised shape."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return _metadata_adapter.validate_python(raw)
    except ValidationError:
        return None


class WebhookEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    reference: Optional[str] = None
    amount: Optional[int] = None
    channel: Optional[str] = None
    status: Optional[str] = None
    paid_at: Optional[str] = None
    metadata: Any = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: str
    data: Any = None


class WebhookAck(BaseModel):
    success: bool = True


class RepayRequest(BaseModel):
    loan_id: UUID
    amount: Decimal = Field(gt=0, decimal_places=2)


class FundWalletRequest(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)


class PaymentInitResponse(BaseModel):
    authorization_url: str
    reference: str


class TransactionDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: TransactionType
    amount: Decimal
    reference: str
    status: TransactionStatus
    created_at: Optional[datetime] = None


class WalletDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    balance: Decimal
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank_name: Optional[str] = None
    account_reference: Optional[str] = None


class VerifyReferenceResponse(BaseModel):
    reference: str
    provider_status: Optional[str] = None
    outcome: str
