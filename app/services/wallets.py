from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import PaymentGatewayError
from app.models.transaction import Transaction
from app.models.user import User
from app.models.wallet import Wallet
from app.schemas.payments import (
    DepositMetadata,
    PaymentInitResponse,
    TransactionStatus,
    TransactionType,
)
from app.services import ledger
from app.services.paystack import PaystackClient, to_minor_units
from app.services.repayments import build_reference

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
FALLBACK_NAME = "User Name"


def split_full_name(full_name: str | None) -> tuple[str, str]:
    parts = (full_name or FALLBACK_NAME).split()
    if not parts:
        parts = FALLBACK_NAME.split()
    first_name = parts[0]
    last_name = " ".join(parts[1:]) if len(parts) > 1 else first_name
    return first_name, last_name


async def ensure_wallet(db: AsyncSession, user: User) -> Wallet:
    wallet = await ledger.get_wallet_for_user(db, user.id)
    if wallet is None:
        wallet = Wallet(user_id=user.id, balance=Decimal("0"))
        db.add(wallet)
        await db.flush()
    return wallet


async def create_virtual_account(
    db: AsyncSession, gateway: PaystackClient, user: User
) -> tuple[Wallet, bool]:
    """Assign a dedicated account to the user's wallet; returns (wallet, created)."""
    wallet = await ensure_wallet(db, user)
    if wallet.has_virtual_account:
        return wallet, False

    first_name, last_name = split_full_name(user.full_name)
    result = await gateway.create_virtual_account(user.email, first_name, last_name, user.phone)
    if not result.success or result.data is None:
        raise PaymentGatewayError(result.error or "Failed to create virtual account")

    account = result.data
    wallet.account_number = account.account_number
    wallet.account_name = account.account_name
    wallet.bank_name = account.bank_name
    wallet.account_reference = account.provider_account_id
    db.add(wallet)
    await db.flush()
    logger.info("Virtual account assigned to user %s", user.id)
    return wallet, True


async def fund_wallet(
    db: AsyncSession,
    gateway: PaystackClient,
    user: User,
    amount: Decimal,
) -> PaymentInitResponse:
    """Open a hosted payment that credits the wallet once the charge is confirmed."""
    await ensure_wallet(db, user)
    amount = Decimal(str(amount)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    reference = build_reference("dep", user.id)
    transaction = Transaction(
        user_id=user.id,
        type=TransactionType.DEPOSIT.value,
        amount=amount,
        reference=reference,
        status=TransactionStatus.PENDING.value,
    )
    db.add(transaction)
    await db.commit()

    metadata = DepositMetadata(type="deposit", user_id=user.id)
    result = await gateway.initialize_transaction(
        user.email,
        to_minor_units(amount),
        reference,
        metadata=metadata.model_dump(mode="json", by_alias=True),
    )
    if not result.success or result.data is None:
        logger.warning("Deposit initialization failed: %s", result.error, extra={"reference": reference})
        await ledger.update_transaction_status(db, transaction, TransactionStatus.FAILED, None)
        await db.commit()
        raise PaymentGatewayError(result.error or "Failed to initialize payment")

    return PaymentInitResponse(
        authorization_url=result.data.authorization_url,
        reference=result.data.reference,
    )
