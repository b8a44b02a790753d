"""Status transition rules for loan applications and accounts"""

from typing import Dict, FrozenSet, Mapping

from consumer_finance.domain.exceptions import Conflict
from consumer_finance.domain.models import AccountStatus, LoanApplicationStatus, LoanDecision

# PENDING is the only state with outgoing edges; nothing re-enters PENDING
LOAN_APPLICATION_TRANSITIONS: Dict[LoanApplicationStatus, FrozenSet[LoanApplicationStatus]] = {
    LoanApplicationStatus.PENDING: frozenset(
        {LoanApplicationStatus.APPROVED, LoanApplicationStatus.REJECTED, LoanApplicationStatus.CANCELLED}
    ),
    LoanApplicationStatus.APPROVED: frozenset(),
    LoanApplicationStatus.REJECTED: frozenset(),
    LoanApplicationStatus.CANCELLED: frozenset(),
}

ACCOUNT_TRANSITIONS: Dict[AccountStatus, FrozenSet[AccountStatus]] = {
    AccountStatus.ACTIVE: frozenset({AccountStatus.DISABLED, AccountStatus.ARCHIVED}),
    AccountStatus.DISABLED: frozenset({AccountStatus.ACTIVE, AccountStatus.ARCHIVED}),
    AccountStatus.ARCHIVED: frozenset(),
}

DECISION_OUTCOMES: Dict[LoanDecision, LoanApplicationStatus] = {
    LoanDecision.APPROVED: LoanApplicationStatus.APPROVED,
    LoanDecision.REJECTED: LoanApplicationStatus.REJECTED,
}


def is_terminal(status: LoanApplicationStatus) -> bool:
    return not LOAN_APPLICATION_TRANSITIONS[status]


def can_transition(transitions: Mapping, current, target) -> bool:
    """Whether ``current -> target`` is an edge of ``transitions``"""
    return target in transitions.get(current, frozenset())


def require_account_transition(current: AccountStatus, target: AccountStatus, entity: str) -> bool:
    """
    Validate an account status change.

    Returns False when the status is unchanged (a no-op), True when the
    transition should be applied.

    Raises:
        Conflict: the transition leaves a terminal state or is not an edge
    """
    if current == target:
        return False
    if not can_transition(ACCOUNT_TRANSITIONS, current, target):
        if not ACCOUNT_TRANSITIONS[current]:
            raise Conflict(f"Cannot change {entity} status from {current.value}: it is a terminal state")
        raise Conflict(f"Cannot change {entity} status from {current.value} to {target.value}")
    return True


def require_pending(status: LoanApplicationStatus, application_id: str) -> None:
    """Raise Conflict unless the application can still be decided or cancelled"""
    if status != LoanApplicationStatus.PENDING:
        raise Conflict(
            f"Loan application '{application_id}' is already decided (status: {status.value})"
        )
