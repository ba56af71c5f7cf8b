from __future__ import annotations

from enum import Enum

from app.core.errors import InvalidStatusTransition
from app.schemas.loan import LoanStatus, RepaymentStatus
from app.schemas.payments import TransactionStatus


LOAN_TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED, LoanStatus.REJECTED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.REPAID}),
    LoanStatus.REJECTED: frozenset(),
    LoanStatus.REPAID: frozenset(),
}

REPAYMENT_TRANSITIONS: dict[RepaymentStatus, frozenset[RepaymentStatus]] = {
    RepaymentStatus.PENDING: frozenset({RepaymentStatus.COMPLETED, RepaymentStatus.FAILED}),
    RepaymentStatus.FAILED: frozenset({RepaymentStatus.COMPLETED}),
    RepaymentStatus.COMPLETED: frozenset(),
}

# A failed charge can still be confirmed later by the provider; SUCCESS is terminal.
TRANSACTION_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED}),
    TransactionStatus.FAILED: frozenset({TransactionStatus.SUCCESS}),
    TransactionStatus.SUCCESS: frozenset(),
}

_MACHINES: dict[type[Enum], tuple[str, dict]] = {
    LoanStatus: ("loan", LOAN_TRANSITIONS),
    RepaymentStatus: ("repayment", REPAYMENT_TRANSITIONS),
    TransactionStatus: ("transaction", TRANSACTION_TRANSITIONS),
}


def can_transition(current: Enum | str, target: Enum) -> bool:
    _, table = _MACHINES[type(target)]
    try:
        current_state = type(target)(current)
    except ValueError:
        return False
    return target in table[current_state]


def ensure_transition(current: Enum | str, target: Enum) -> None:
    """Raise InvalidStatusTransition unless ``current -> target`` is declared."""
    entity, _ = _MACHINES[type(target)]
    if not can_transition(current, target):
        current_label = current.value if isinstance(current, Enum) else str(current)
        raise InvalidStatusTransition(entity, current_label, target.value)


def sources_for(target: Enum) -> list[str]:
    """Statuses from which ``target`` is reachable, for guarded UPDATE statements."""
    _, table = _MACHINES[type(target)]
    return [state.value for state, targets in table.items() if target in targets]
