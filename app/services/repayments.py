from __future__ import annotations

import logging
import secrets
import time
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PaymentGatewayError
from app.models.loan import Loan
from app.models.repayment import Repayment
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.loan import LoanStatus, RepaymentStatus
from app.schemas.payments import (
    PaymentInitResponse,
    RepaymentMetadata,
    TransactionStatus,
    TransactionType,
)
from app.services import ledger
from app.services.paystack import PaystackClient, to_minor_units

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


def build_reference(prefix: str, subject) -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}_{subject}_{millis}{secrets.token_hex(2)}"


async def initiate_repayment(
    db: AsyncSession,
    gateway: PaystackClient,
    user: User,
    loan: Loan,
    amount: Decimal,
) -> PaymentInitResponse:
    """Record a PENDING repayment attempt and open a hosted payment for it.

    The pending rows are committed before the provider call so a fast webhook
    always finds them; a provider failure marks both rows FAILED.
    """
    if loan.user_id != user.id:
        raise PermissionError("Unauthorized to repay this loan")
    if loan.status != LoanStatus.APPROVED.value:
        raise ValueError("Loan is not approved for repayment")

    amount = Decimal(str(amount)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    reference = build_reference("repay", loan.id)
    repayment = Repayment(
        loan_id=loan.id,
        amount=amount,
        transaction_ref=reference,
        status=RepaymentStatus.PENDING.value,
    )
    transaction = Transaction(
        user_id=user.id,
        type=TransactionType.REPAYMENT.value,
        amount=amount,
        reference=reference,
        status=TransactionStatus.PENDING.value,
    )
    db.add_all([repayment, transaction])
    await db.commit()

    metadata = RepaymentMetadata(type="repayment", loan_id=loan.id, user_id=user.id)
    result = await gateway.initialize_transaction(
        user.email,
        to_minor_units(amount),
        reference,
        metadata=metadata.model_dump(mode="json", by_alias=True),
    )
    if not result.success or result.data is None:
        logger.warning(
            "Repayment initialization failed: %s",
            result.error,
            extra={"reference": reference},
        )
        await ledger.update_transaction_status(db, transaction, TransactionStatus.FAILED, None)
        await ledger.mark_repayment_failed(db, repayment)
        await db.commit()
        raise PaymentGatewayError(result.error or "Failed to initialize payment")

    logger.info("Repayment initialized for loan %s", loan.id, extra={"reference": reference})
    return PaymentInitResponse(
        authorization_url=result.data.authorization_url,
        reference=result.data.reference,
    )
