# payout_engine/services/distributions.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.distribution_states import (
    TRANSITIONS,
    DistributionAction,
    DistributionStatus,
    display_status,
    ensure_deletable,
    next_status,
)
from ..domain.errors import StateConflictError, ValidationError
from ..domain.money import as_float, quantize_money
from ..models import Distribution, Transaction
from .admin import require_admin
from .notifications import fire
from .ownership import must_get_distribution, must_get_statement
from .recalculation import write_allocations
from .shares import resolve_outstanding_shares
from .validation import assert_payout_sum, check_declarable

log = logging.getLogger("payout_engine.distributions")

# -----------------------------------------------------------------------------
# Distribution lifecycle
# -----------------------------------------------------------------------------
# Every action:
#   1) checks the caller is admin
#   2) validates the transition before writing anything
#   3) writes inside one unit of work
#   4) fires notifications only after commit
# -----------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.utcnow()


def payout_reference(payout_id: int) -> str:
    return f"{settings.payout_reference_prefix}-{int(payout_id):08d}"


def _snapshot(dist: Distribution) -> dict[str, Any]:
    return {
        "status": dist.status,
        "total_distributed": str(dist.total_distributed),
        "approved_by": dist.approved_by,
        "declared_at": dist.declared_at,
        "notes": dist.notes,
    }


def _compare_and_set(db: Session, dist: Distribution, action: DistributionAction, **values: Any) -> DistributionStatus:
    """
    Conditional status write: only succeeds if the row is still in the
    transition's source state. A concurrent admin who got there first makes
    rowcount 0 and this caller fails with StateConflictError.
    """
    target = next_status(dist.status, action)
    source, _ = TRANSITIONS[action]
    res = db.execute(
        update(Distribution)
        .where(Distribution.id == dist.id, Distribution.status == source.value)
        .values(status=target.value, updated_at=_utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise StateConflictError(
            f"distribution {dist.id} changed concurrently; {action.value} not applied",
            context={"distribution_id": dist.id, "action": action.value},
        )
    db.refresh(dist)
    return target


def create_draft_distribution(db: Session, *, actor_user_id: int, statement_id: int) -> Distribution:
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        stmt = must_get_statement(db, statement_id=statement_id, lock=True)

        existing = db.scalar(select(Distribution).where(Distribution.rental_statement_id == stmt.id))
        if existing is not None:
            raise StateConflictError(
                "a distribution already exists for this rental statement",
                context={"statement_id": stmt.id, "distribution_id": existing.id},
            )

        shares = resolve_outstanding_shares(db, property_id=stmt.property_id, lock=True)
        if shares.total_outstanding == 0:
            raise ValidationError(
                "no shares have been purchased for this property", context={"property_id": stmt.property_id}
            )

        dist = Distribution(
            property_id=stmt.property_id,
            rental_statement_id=stmt.id,
            status=DistributionStatus.DRAFT.value,
            total_distributed=quantize_money(stmt.net_distributable),
        )
        db.add(dist)
        db.flush()

        payouts = write_allocations(db, dist=dist, net_distributable=stmt.net_distributable, shares=shares)

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_DRAFT_CREATED",
            entity_type="Distribution",
            entity_id=dist.id,
            after={
                "statement_id": stmt.id,
                "property_id": stmt.property_id,
                "total_distributed": str(dist.total_distributed),
                "payouts": len(payouts),
                "total_shares": shares.total_shares,
                "sold_shares": shares.total_outstanding,
                "unsold_shares": shares.unsold_shares,
            },
        )

    log.info("distribution_draft_created", extra={"distribution_id": dist.id, "statement_id": statement_id})
    return dist


def submit_for_approval(db: Session, *, actor_user_id: int, distribution_id: int) -> Distribution:
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        before = _snapshot(dist)
        _compare_and_set(db, dist, DistributionAction.SUBMIT)
        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_SUBMITTED",
            entity_type="Distribution",
            entity_id=dist.id,
            before=before,
            after=_snapshot(dist),
        )

    fire("notify_distribution_pending_approval", distribution_id=dist.id, property_id=dist.property_id)
    return dist


def approve_distribution(
    db: Session,
    *,
    actor_user_id: int,
    distribution_id: int,
    notes: Optional[str] = None,
) -> Distribution:
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        before = _snapshot(dist)
        values: dict[str, Any] = {"approved_by": int(actor_user_id), "approved_at": _utcnow()}
        if notes is not None:
            values["notes"] = notes
        _compare_and_set(db, dist, DistributionAction.APPROVE, **values)
        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_APPROVED",
            entity_type="Distribution",
            entity_id=dist.id,
            before=before,
            after=_snapshot(dist),
            reason=notes,
        )
    return dist


def reject_distribution(
    db: Session,
    *,
    actor_user_id: int,
    distribution_id: int,
    notes: Optional[str] = None,
) -> Distribution:
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        before = _snapshot(dist)
        _compare_and_set(db, dist, DistributionAction.REJECT, notes=notes)
        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_REJECTED",
            entity_type="Distribution",
            entity_id=dist.id,
            before=before,
            after=_snapshot(dist),
            reason=notes,
        )
    return dist


def declare_distribution(db: Session, *, actor_user_id: int, distribution_id: int) -> Distribution:
    """
    APPROVED -> DECLARED.

    Freezes total_distributed, stamps declared_at and writes exactly one
    PAYOUT ledger transaction per payout, all in one unit of work.
    """
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        next_status(dist.status, DistributionAction.DECLARE)

        assert_payout_sum(dist)
        report = check_declarable(dist)
        if not report.is_valid:
            raise ValidationError("; ".join(report.errors), context={"errors": report.errors})

        before = _snapshot(dist)
        frozen = quantize_money(dist.statement.net_distributable)
        _compare_and_set(
            db,
            dist,
            DistributionAction.DECLARE,
            declared_at=_utcnow(),
            total_distributed=frozen,
        )

        payouts = list(dist.payouts)
        for p in payouts:
            db.add(
                Transaction(
                    txn_type="PAYOUT",
                    amount=p.amount,
                    currency=settings.ledger_currency,
                    user_id=p.user_id,
                    property_id=p.property_id,
                    payout_id=p.id,
                    reference=payout_reference(p.id),
                )
            )
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_DECLARED",
            entity_type="Distribution",
            entity_id=dist.id,
            before=before,
            after={**_snapshot(dist), "transactions_created": len(payouts), "warnings": report.warnings},
        )

    user_ids = sorted({p.user_id for p in payouts if p.user_id is not None})
    log.info(
        "distribution_declared payouts=%d",
        len(payouts),
        extra={"distribution_id": dist.id, "property_id": dist.property_id, "actor_user_id": actor_user_id},
    )
    fire(
        "notify_distribution_declared",
        distribution_id=dist.id,
        property_id=dist.property_id,
        user_ids=user_ids,
        total_distributed=as_float(dist.total_distributed),
    )
    return dist


def delete_distribution(
    db: Session,
    *,
    actor_user_id: int,
    distribution_id: int,
    reason: Optional[str] = None,
) -> dict[str, Any]:
    """
    Remove a DECLARED distribution that has no PAID payout, together with its
    payouts and the ledger transactions its declaration emitted.
    """
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        dist = must_get_distribution(db, distribution_id=distribution_id, lock=True)
        payouts = list(dist.payouts)
        ensure_deletable(dist.status, [p.status for p in payouts])

        payout_ids = [p.id for p in payouts]
        txn_deleted = 0
        if payout_ids:
            res = db.execute(
                delete(Transaction)
                .where(Transaction.payout_id.in_(payout_ids))
                .execution_options(synchronize_session=False)
            )
            txn_deleted = int(res.rowcount or 0)

        before = {**_snapshot(dist), "payouts": len(payouts)}
        db.delete(dist)
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="DISTRIBUTION_DELETED",
            entity_type="Distribution",
            entity_id=distribution_id,
            before=before,
            after={"payouts_deleted": len(payouts), "transactions_deleted": txn_deleted},
            reason=reason,
        )

    log.warning(
        "distribution_deleted payouts=%d transactions=%d reason=%s",
        len(payouts),
        txn_deleted,
        reason,
        extra={"distribution_id": distribution_id, "actor_user_id": actor_user_id},
    )
    return {"ok": True, "payouts_deleted": len(payouts), "transactions_deleted": txn_deleted}


def get_distribution(db: Session, *, distribution_id: int) -> Distribution:
    return must_get_distribution(db, distribution_id=distribution_id)


def list_distributions(
    db: Session,
    *,
    property_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 200,
) -> list[Distribution]:
    q = select(Distribution)
    if property_id is not None:
        q = q.where(Distribution.property_id == int(property_id))
    if status:
        q = q.where(Distribution.status == status.upper())
    return list(db.scalars(q.order_by(Distribution.id.desc()).limit(int(limit))).all())


def distribution_label(dist: Distribution) -> str:
    return display_status(dist.status, [p.status for p in dist.payouts])
