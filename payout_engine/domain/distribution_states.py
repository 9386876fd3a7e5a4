# payout_engine/domain/distribution_states.py
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from .errors import EditConflictError, StateConflictError

# -----------------------------------------------------------------------------
# Distribution approval lifecycle
# -----------------------------------------------------------------------------
#   DRAFT -> PENDING_APPROVAL -> APPROVED -> DECLARED
#                  |
#                  +-- reject --> DRAFT
#
# "PAID" is not a machine state. A declared distribution whose payouts are all
# PAID is reported as PAID by display_status(); nothing gates on it.
# -----------------------------------------------------------------------------


class DistributionStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    DECLARED = "DECLARED"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class DistributionAction(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    DECLARE = "declare"


TRANSITIONS: dict[DistributionAction, tuple[DistributionStatus, DistributionStatus]] = {
    DistributionAction.SUBMIT: (DistributionStatus.DRAFT, DistributionStatus.PENDING_APPROVAL),
    DistributionAction.APPROVE: (DistributionStatus.PENDING_APPROVAL, DistributionStatus.APPROVED),
    DistributionAction.REJECT: (DistributionStatus.PENDING_APPROVAL, DistributionStatus.DRAFT),
    DistributionAction.DECLARE: (DistributionStatus.APPROVED, DistributionStatus.DECLARED),
}

PAID_LABEL = "PAID"


def _status(v: str | DistributionStatus) -> DistributionStatus:
    try:
        return DistributionStatus(v)
    except ValueError:
        raise StateConflictError(f"unknown distribution status {v!r}")


def next_status(current: str | DistributionStatus, action: DistributionAction) -> DistributionStatus:
    """Target state for action, or StateConflictError if current is not its source."""
    src, dst = TRANSITIONS[action]
    cur = _status(current)
    if cur != src:
        raise StateConflictError(
            f"cannot {action.value} a distribution in status {cur.value}; requires {src.value}",
            context={"status": cur.value, "action": action.value},
        )
    return dst


def ensure_statement_editable(distribution_status: Optional[str]) -> None:
    """Statement figures may change only while its distribution is absent or DRAFT."""
    if distribution_status is None:
        return
    if _status(distribution_status) != DistributionStatus.DRAFT:
        raise EditConflictError(
            "cannot edit statement with a distribution beyond DRAFT status",
            context={"distribution_status": distribution_status},
        )


def ensure_deletable(distribution_status: str, payout_statuses: Iterable[str]) -> None:
    if _status(distribution_status) != DistributionStatus.DECLARED:
        raise StateConflictError(
            f"only DECLARED distributions can be deleted (status is {distribution_status})"
        )
    paid = sum(1 for s in payout_statuses if s == PayoutStatus.PAID.value)
    if paid:
        raise StateConflictError(f"cannot delete: {paid} payout(s) already paid", context={"paid": paid})


def display_status(distribution_status: str, payout_statuses: Iterable[str]) -> str:
    statuses = list(payout_statuses)
    if (
        _status(distribution_status) == DistributionStatus.DECLARED
        and statuses
        and all(s == PayoutStatus.PAID.value for s in statuses)
    ):
        return PAID_LABEL
    return _status(distribution_status).value
