# payout_engine/services/validation.py
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..domain.allocation import allocation_tolerance
from ..domain.distribution_states import DistributionStatus
from ..domain.errors import IntegrityError
from ..domain.money import money_sum
from ..models import Distribution
from .ownership import must_get_distribution


@dataclass
class ValidationReport:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def error(self, msg: str) -> None:
        self.errors.append(msg)
        self.is_valid = False

    def as_dict(self) -> dict:
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def check_declarable(dist: Distribution, *, require_status: bool = True) -> ValidationReport:
    """
    Pre-declaration checks.

    Errors block declaration; warnings (rounding residue within tolerance,
    zero-amount payouts) are reported but do not.
    """
    rep = ValidationReport()
    stmt = dist.statement
    payouts = list(dist.payouts)

    if not payouts:
        rep.error("No payouts found for this distribution")

    if stmt.net_distributable <= 0:
        rep.error("Net distributable amount must be positive")

    if stmt.period_start > stmt.period_end:
        rep.error("Rental statement period is invalid (start date after end date)")

    if require_status and dist.status != DistributionStatus.APPROVED.value:
        rep.error(f"Distribution must be APPROVED before declaration. Current status: {dist.status}")

    total = money_sum(p.amount for p in payouts)
    diff = abs(total - stmt.net_distributable)
    if payouts and diff > allocation_tolerance(len(payouts)):
        rep.error(
            f"Total payouts ({total:.2f}) diverge from net distributable ({stmt.net_distributable:.2f}) "
            f"beyond rounding tolerance"
        )
    elif diff > 0:
        rep.warnings.append(
            f"Total payouts ({total:.2f}) differ from net distributable ({stmt.net_distributable:.2f}) "
            f"by {diff:.2f} (rounding)"
        )

    zero = [p.id for p in payouts if p.amount == 0]
    if zero:
        rep.warnings.append(f"{len(zero)} payout(s) have a zero amount")

    return rep


def validate_distribution(db: Session, *, distribution_id: int) -> ValidationReport:
    dist = must_get_distribution(db, distribution_id=distribution_id)
    return check_declarable(dist)


def assert_payout_sum(dist: Distribution) -> None:
    """IntegrityError if persisted payouts drifted past the rounding bound."""
    payouts = list(dist.payouts)
    if not payouts:
        return
    total = money_sum(p.amount for p in payouts)
    diff = abs(total - dist.statement.net_distributable)
    if diff > allocation_tolerance(len(payouts)):
        raise IntegrityError(
            "payout sum diverges from net distributable beyond rounding tolerance",
            context={"distribution_id": dist.id, "payout_total": str(total), "diff": str(diff)},
        )
