import pytest

from app.core.errors import InvalidStatusTransition
from app.schemas.loan import LoanStatus, RepaymentStatus
from app.schemas.payments import TransactionStatus
from app.services.transitions import can_transition, ensure_transition, sources_for


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        ("PENDING", LoanStatus.APPROVED, True),
        ("PENDING", LoanStatus.REJECTED, True),
        ("APPROVED", LoanStatus.REPAID, True),
        ("PENDING", LoanStatus.REPAID, False),
        ("REJECTED", LoanStatus.APPROVED, False),
        ("REPAID", LoanStatus.APPROVED, False),
        ("APPROVED", LoanStatus.PENDING, False),
    ],
)
def test_loan_machine(current, target, allowed) -> None:
    assert can_transition(current, target) is allowed


def test_transaction_success_is_terminal() -> None:
    assert can_transition("PENDING", TransactionStatus.SUCCESS)
    assert can_transition("FAILED", TransactionStatus.SUCCESS)
    assert not can_transition("SUCCESS", TransactionStatus.FAILED)
    assert not can_transition("SUCCESS", TransactionStatus.PENDING)


def test_repayment_completed_is_terminal() -> None:
    assert can_transition(RepaymentStatus.PENDING, RepaymentStatus.COMPLETED)
    assert can_transition(RepaymentStatus.FAILED, RepaymentStatus.COMPLETED)
    assert not can_transition(RepaymentStatus.COMPLETED, RepaymentStatus.FAILED)


def test_unknown_current_status_is_not_a_valid_source() -> None:
    assert can_transition("ARCHIVED", LoanStatus.APPROVED) is False


def test_ensure_transition_raises_with_context() -> None:
    with pytest.raises(InvalidStatusTransition) as excinfo:
        ensure_transition("REJECTED", LoanStatus.APPROVED)

    assert excinfo.value.entity == "loan"
    assert excinfo.value.current == "REJECTED"
    assert excinfo.value.target == "APPROVED"


def test_sources_for_lists_guard_statuses() -> None:
    assert sorted(sources_for(TransactionStatus.SUCCESS)) == ["FAILED", "PENDING"]
    assert sources_for(LoanStatus.REPAID) == ["APPROVED"]
    assert sources_for(TransactionStatus.PENDING) == []
