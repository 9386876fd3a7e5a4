# payout_engine/services/recalculation.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.allocation import (
    UNSOLD_INVENTORY,
    Allocation,
    allocate,
    check_allocation_sum,
    unrounded_share_of,
)
from ..domain.audit import audit_write
from ..domain.distribution_states import DistributionStatus
from ..domain.errors import StateConflictError
from ..domain.events import StatementRevised, subscribe
from ..domain.money import as_float, quantize_money
from ..models import Distribution, Payout, RentalStatement
from .admin import require_admin
from .ownership import must_get_distribution, must_get_statement
from .shares import OutstandingShares, confirmed_shares_by_user, resolve_outstanding_shares

log = logging.getLogger("payout_engine.recalculation")


def unsold_payout_note(unsold_shares: int, total_shares: int) -> str:
    pct = (Decimal(unsold_shares) / Decimal(total_shares) * 100) if total_shares else Decimal(0)
    return f"System payout for {unsold_shares} unsold shares ({pct:.2f}% of total shares)"


def _payout_from_allocation(dist: Distribution, a: Allocation, total_shares: int) -> Payout:
    p = Payout(
        property_id=dist.property_id,
        rental_statement_id=dist.rental_statement_id,
        holder_kind=a.holder.kind,
        user_id=a.holder.user_id,
        shares_at_record=a.shares,
        amount=a.amount,
        status="PENDING",
    )
    if a.holder.kind == UNSOLD_INVENTORY:
        p.notes = unsold_payout_note(a.shares, total_shares)
    return p


def write_allocations(
    db: Session,
    *,
    dist: Distribution,
    net_distributable: Decimal,
    shares: OutstandingShares,
) -> list[Payout]:
    """
    Replace the DRAFT distribution's payout set with a fresh allocation.

    Replacing (never appending) is what makes a re-run idempotent. The sum is
    checked against the pool before anything is flushed.
    """
    if dist.status != DistributionStatus.DRAFT.value:
        raise StateConflictError(
            f"can only recalculate payouts for DRAFT distributions (status is {dist.status})",
            context={"distribution_id": dist.id},
        )

    allocations = allocate(net_distributable, shares.per_holder, shares.total_shares)
    residue = check_allocation_sum(allocations, net_distributable, shares.total_shares)

    dist.payouts.clear()
    db.flush()

    for a in allocations:
        dist.payouts.append(_payout_from_allocation(dist, a, shares.total_shares))
    dist.total_distributed = quantize_money(net_distributable)
    db.add(dist)
    db.flush()

    log.info(
        "payouts_allocated holders=%d residue=%s",
        len(allocations),
        residue,
        extra={"distribution_id": dist.id, "property_id": dist.property_id},
    )
    return list(dist.payouts)


def _recompute(db: Session, dist: Distribution) -> list[Payout]:
    stmt = must_get_statement(db, statement_id=dist.rental_statement_id)
    shares = resolve_outstanding_shares(db, property_id=dist.property_id, lock=True)
    return write_allocations(db, dist=dist, net_distributable=stmt.net_distributable, shares=shares)


def recompute_distribution(db: Session, *, actor_user_id: int, distribution_id: int) -> Distribution:
    """Full recompute of a DRAFT distribution from current statement figures and holdings."""
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        before = {"total_distributed": str(dist.total_distributed), "payouts": len(dist.payouts)}
        payouts = _recompute(db, dist)
        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_RECALCULATED",
            entity_type="Distribution",
            entity_id=dist.id,
            before=before,
            after={"total_distributed": str(dist.total_distributed), "payouts": len(payouts)},
        )
    return dist


def on_statement_revised(db: Session, event: StatementRevised) -> None:
    """Every DRAFT distribution of the revised statement follows the new figures."""
    drafts = db.scalars(
        select(Distribution)
        .where(
            Distribution.rental_statement_id == event.statement_id,
            Distribution.status == DistributionStatus.DRAFT.value,
        )
        .with_for_update()
    ).all()
    for dist in drafts:
        shares = resolve_outstanding_shares(db, property_id=dist.property_id, lock=True)
        write_allocations(db, dist=dist, net_distributable=event.net_distributable, shares=shares)
        log.info(
            "draft_recomputed_after_statement_edit",
            extra={"distribution_id": dist.id, "statement_id": event.statement_id},
        )


def register_event_handlers() -> None:
    subscribe(StatementRevised, on_statement_revised)


# -----------------------------------------------------------------------------
# Unsold-inventory correction
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class UnsoldFix:
    payout_id: int
    distribution_id: int
    distribution_status: str
    old_shares: int
    new_shares: int
    old_amount: float
    new_amount: float

    def as_dict(self) -> dict:
        return {
            "payout_id": self.payout_id,
            "distribution_id": self.distribution_id,
            "distribution_status": self.distribution_status,
            "old_shares": self.old_shares,
            "new_shares": self.new_shares,
            "old_amount": self.old_amount,
            "new_amount": self.new_amount,
        }


def fix_unsold_inventory_payouts(
    db: Session,
    *,
    actor_user_id: int,
    distribution_id: Optional[int] = None,
) -> list[UnsoldFix]:
    """
    Re-derive the unsold-inventory holder's shares_at_record from current
    confirmed investments. Investor rows are not touched.

    DRAFT: amount follows the corrected shares.
    Later states: shares only, the approved amount stays frozen.
    """
    fixes: list[UnsoldFix] = []
    with unit_of_work(db):
        require_admin(db, actor_user_id)

        q = select(Payout).where(Payout.holder_kind == UNSOLD_INVENTORY).order_by(Payout.id)
        if distribution_id is not None:
            must_get_distribution(db, distribution_id=distribution_id)
            q = q.where(Payout.distribution_id == int(distribution_id))

        for payout in db.scalars(q.with_for_update()).all():
            dist = payout.distribution
            stmt: RentalStatement = dist.statement
            total_shares = int(dist.property.total_shares)
            sold = sum(confirmed_shares_by_user(db, property_id=payout.property_id).values())
            correct = total_shares - sold

            if payout.shares_at_record == correct:
                continue

            old_shares, old_amount = payout.shares_at_record, payout.amount
            payout.shares_at_record = correct
            payout.notes = unsold_payout_note(correct, total_shares)
            if dist.status == DistributionStatus.DRAFT.value:
                payout.amount = quantize_money(unrounded_share_of(stmt.net_distributable, correct, total_shares))
            db.add(payout)
            db.flush()

            fix = UnsoldFix(
                payout_id=payout.id,
                distribution_id=dist.id,
                distribution_status=dist.status,
                old_shares=old_shares,
                new_shares=correct,
                old_amount=as_float(old_amount),
                new_amount=as_float(payout.amount),
            )
            fixes.append(fix)
            log.info(
                "unsold_inventory_corrected old=%s new=%s",
                old_shares,
                correct,
                extra={"payout_id": payout.id, "distribution_id": dist.id},
            )

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="UNSOLD_INVENTORY_PAYOUTS_FIXED",
            entity_type="Distribution",
            entity_id=distribution_id if distribution_id is not None else "*",
            after={"fixed": len(fixes), "payouts": [f.as_dict() for f in fixes]},
        )
    return fixes
