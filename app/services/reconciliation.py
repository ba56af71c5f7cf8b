"""Payment reconciliation driven by provider webhooks.

A confirmed charge moves the matching Transaction to SUCCESS, then either
completes the loan Repayment it pays for (and flips the Loan to REPAID once
completed repayments cover ``total_repayment``) or credits the owner's Wallet.
All writes go through the caller's session; the caller commits once per event
so a failure part-way leaves nothing applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import LedgerError, PaymentGatewayError, WebhookPayloadError
from app.models.transaction import Transaction
from app.schemas.loan import LoanStatus, RepaymentStatus
from app.schemas.payments import (
    DepositMetadata,
    RepaymentMetadata,
    TransactionStatus,
    TransactionType,
    WebhookEvent,
    WebhookEventData,
    WebhookEventType,
    parse_payment_metadata,
)
from app.services import ledger
from app.services.audit import model_snapshot, record_audit_log
from app.services.paystack import PaystackClient, to_major_units
from app.services.transitions import can_transition

logger = logging.getLogger(__name__)


class ReconciliationOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    PARTIAL = "partial"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass
class ReconciliationResult:
    event: str
    reference: str | None
    outcome: ReconciliationOutcome
    loan_status_changed: bool = False
    repayment_completed: bool = False
    detail: str | None = None

    @property
    def admin_view_changed(self) -> bool:
        """True when cached admin loan views (status, total repaid) are now stale."""
        return self.loan_status_changed or self.repayment_completed


def parse_event(payload: Any) -> WebhookEvent:
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object")
    try:
        return WebhookEvent.model_validate(payload)
    except ValueError as exc:
        raise WebhookPayloadError("Webhook body is not a valid event") from exc


def parse_event_data(raw: Any) -> WebhookEventData:
    """Validate ``data`` for events that touch the ledger."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise WebhookPayloadError("Webhook event data must be a JSON object")
    try:
        return WebhookEventData.model_validate(raw)
    except ValueError as exc:
        raise WebhookPayloadError("Webhook event data is not valid") from exc


def _raw_reference(raw_data: dict[str, Any]) -> str | None:
    reference = raw_data.get("reference")
    return reference if isinstance(reference, str) else None


async def handle_event(db: AsyncSession, payload: Any) -> ReconciliationResult:
    """Dispatch a verified webhook payload to its reconciliation procedure.

    Only ``charge.success`` and ``transfer.*`` bodies are validated beyond the
    event name; everything else is acknowledged whatever its ``data`` holds.
    """
    event = parse_event(payload)
    raw_data = event.data if isinstance(event.data, dict) else {}
    reference = _raw_reference(raw_data)
    logger.info(
        "Paystack webhook event=%s reference=%s",
        event.event,
        reference,
        extra={"reference": reference},
    )

    if event.event == WebhookEventType.CHARGE_SUCCESS.value:
        result = await apply_charge_success(db, parse_event_data(event.data), raw_data)
    elif event.event in {
        WebhookEventType.TRANSFER_SUCCESS.value,
        WebhookEventType.TRANSFER_FAILED.value,
    }:
        result = await apply_transfer_outcome(db, event.event, parse_event_data(event.data), raw_data)
    elif event.event == WebhookEventType.DEDICATED_ACCOUNT_ASSIGNED.value:
        logger.info("Dedicated account assigned", extra={"reference": reference})
        result = ReconciliationResult(event.event, reference, ReconciliationOutcome.IGNORED)
    else:
        logger.info("Unhandled webhook event type %s", event.event)
        result = ReconciliationResult(event.event, reference, ReconciliationOutcome.IGNORED)

    logger.info(
        "Reconciliation %s for event=%s reference=%s",
        result.outcome.value,
        result.event,
        result.reference,
        extra={"reference": result.reference},
    )
    return result


async def apply_charge_success(
    db: AsyncSession,
    data: WebhookEventData,
    raw_data: dict[str, Any],
) -> ReconciliationResult:
    event_name = WebhookEventType.CHARGE_SUCCESS.value
    reference = data.reference
    if not reference:
        logger.warning("charge.success without reference")
        return ReconciliationResult(event_name, None, ReconciliationOutcome.IGNORED, detail="missing reference")

    transaction = await ledger.find_transaction_by_reference(db, reference)
    if transaction is None:
        logger.warning("Transaction not found", extra={"reference": reference})
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.NOT_FOUND)

    if transaction.status == TransactionStatus.SUCCESS.value:
        logger.info("Transaction already processed", extra={"reference": reference})
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.DUPLICATE)

    applied = await ledger.update_transaction_status(db, transaction, TransactionStatus.SUCCESS, raw_data)
    if not applied:
        logger.info("Transaction confirmed by a concurrent delivery", extra={"reference": reference})
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.DUPLICATE)

    if transaction.type == TransactionType.REPAYMENT.value:
        return await _apply_repayment(db, transaction, data, reference)
    if transaction.type == TransactionType.DEPOSIT.value:
        return await _apply_deposit(db, transaction, data, reference)

    return ReconciliationResult(event_name, reference, ReconciliationOutcome.APPLIED)


async def _apply_repayment(
    db: AsyncSession,
    transaction: Transaction,
    data: WebhookEventData,
    reference: str,
) -> ReconciliationResult:
    event_name = WebhookEventType.CHARGE_SUCCESS.value
    metadata = parse_payment_metadata(data.metadata)
    repayment = None
    if isinstance(metadata, RepaymentMetadata):
        repayment = await ledger.find_repayment_by_reference_and_loan(db, reference, metadata.loan_id)

    if repayment is None:
        reason = "unrecognised metadata" if not isinstance(metadata, RepaymentMetadata) else "no matching repayment"
        logger.warning(
            "reconciliation.partial: repayment confirmed but not matched (%s)",
            reason,
            extra={"reference": reference},
        )
        record_audit_log(
            db,
            actor_id=None,
            action="reconciliation.unmatched_repayment",
            resource_type="transaction",
            resource_id=reference,
            new_value={"reason": reason, "metadata": data.metadata, "amount": str(transaction.amount)},
        )
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.PARTIAL, detail=reason)

    await ledger.mark_repayment_completed(db, repayment)

    loan = await ledger.get_loan(db, repayment.loan_id)
    if loan is None:
        raise LedgerError(f"Loan {repayment.loan_id} vanished during reconciliation")

    total_repaid = await ledger.sum_completed_repayments(db, loan.id)
    loan_status_changed = False
    if total_repaid >= loan.total_repayment:
        if loan.status == LoanStatus.APPROVED.value:
            old_snapshot = model_snapshot(loan)
            loan_status_changed = await ledger.update_loan_status(db, loan, LoanStatus.REPAID)
            if loan_status_changed:
                logger.info("Loan fully repaid: %s", loan.id, extra={"reference": reference})
                record_audit_log(
                    db,
                    actor_id=None,
                    action="loan.repaid",
                    resource_type="loan",
                    resource_id=str(loan.id),
                    old_value=old_snapshot,
                    new_value={**old_snapshot, "status": LoanStatus.REPAID.value},
                )
        elif loan.status != LoanStatus.REPAID.value:
            logger.warning(
                "Loan %s covered by repayments while in status %s",
                loan.id,
                loan.status,
                extra={"reference": reference},
            )

    return ReconciliationResult(
        event_name,
        reference,
        ReconciliationOutcome.APPLIED,
        loan_status_changed=loan_status_changed,
        repayment_completed=True,
    )


async def _apply_deposit(
    db: AsyncSession,
    transaction: Transaction,
    data: WebhookEventData,
    reference: str,
) -> ReconciliationResult:
    metadata = parse_payment_metadata(data.metadata)
    if isinstance(metadata, DepositMetadata) and metadata.user_id != transaction.user_id:
        logger.warning(
            "Deposit metadata user %s differs from transaction owner %s",
            metadata.user_id,
            transaction.user_id,
            extra={"reference": reference},
        )

    amount = to_major_units(data.amount) if data.amount is not None else transaction.amount
    await ledger.credit_wallet(db, transaction.user_id, amount)
    logger.info("Wallet balance updated for user %s", transaction.user_id, extra={"reference": reference})
    return ReconciliationResult(WebhookEventType.CHARGE_SUCCESS.value, reference, ReconciliationOutcome.APPLIED)


async def apply_transfer_outcome(
    db: AsyncSession,
    event_name: str,
    data: WebhookEventData,
    raw_data: dict[str, Any],
) -> ReconciliationResult:
    reference = data.reference
    if not reference:
        return ReconciliationResult(event_name, None, ReconciliationOutcome.IGNORED, detail="missing reference")

    target = (
        TransactionStatus.SUCCESS
        if event_name == WebhookEventType.TRANSFER_SUCCESS.value
        else TransactionStatus.FAILED
    )
    transaction = await ledger.find_transaction_by_reference(db, reference)
    if transaction is None:
        logger.warning("Transaction not found", extra={"reference": reference})
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.NOT_FOUND)

    if transaction.status == target.value:
        return ReconciliationResult(event_name, reference, ReconciliationOutcome.DUPLICATE)

    if not can_transition(transaction.status, target):
        logger.warning(
            "Ignoring %s for transaction in status %s",
            event_name,
            transaction.status,
            extra={"reference": reference},
        )
        return ReconciliationResult(
            event_name,
            reference,
            ReconciliationOutcome.REJECTED,
            detail=f"{transaction.status} -> {target.value} not allowed",
        )

    applied = await ledger.update_transaction_status(db, transaction, target, raw_data)
    outcome = ReconciliationOutcome.APPLIED if applied else ReconciliationOutcome.DUPLICATE
    return ReconciliationResult(event_name, reference, outcome)


async def reconcile_reference(
    db: AsyncSession,
    gateway: PaystackClient,
    reference: str,
) -> tuple[str, ReconciliationResult]:
    """Poll the provider for ``reference`` and apply the confirmation if it succeeded.

    Safety net for lost webhooks; returns the provider status with the result.
    """
    verified = await gateway.verify_transaction(reference)
    if not verified.success or verified.data is None:
        raise PaymentGatewayError(verified.error or "Failed to verify transaction")

    payment = verified.data
    raw_data = dict(payment.raw)
    data = WebhookEventData.model_validate({**raw_data, "reference": reference})

    if payment.status == "success":
        return payment.status, await apply_charge_success(db, data, raw_data)

    if payment.status == "failed":
        transaction = await ledger.find_transaction_by_reference(db, reference)
        if transaction is None:
            return payment.status, ReconciliationResult("verify", reference, ReconciliationOutcome.NOT_FOUND)
        if not can_transition(transaction.status, TransactionStatus.FAILED):
            return payment.status, ReconciliationResult("verify", reference, ReconciliationOutcome.DUPLICATE)
        await ledger.update_transaction_status(db, transaction, TransactionStatus.FAILED, raw_data)
        repayment = await ledger.find_repayment_by_reference(db, reference)
        if repayment is not None and can_transition(repayment.status, RepaymentStatus.FAILED):
            await ledger.mark_repayment_failed(db, repayment)
        return payment.status, ReconciliationResult("verify", reference, ReconciliationOutcome.APPLIED)

    return payment.status, ReconciliationResult("verify", reference, ReconciliationOutcome.IGNORED)
