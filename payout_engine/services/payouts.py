# payout_engine/services/payouts.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.allocation import allocation_tolerance
from ..domain.audit import audit_write
from ..domain.distribution_states import DistributionStatus, PayoutStatus
from ..domain.errors import DistributionEngineError, NotFoundError, StateConflictError, ValidationError
from ..domain.money import as_float, to_decimal
from ..models import Payout
from ..schemas import payload_fields
from .admin import require_admin
from .notifications import fire
from .ownership import must_get_payout

log = logging.getLogger("payout_engine.payouts")

WALLET = "WALLET"
PAYMENT_METHODS = ("WALLET", "BANK_TRANSFER", "CHECK", "WIRE_TRANSFER", "MOBILE_MONEY", "CASH", "OTHER")


@dataclass
class RowOutcome:
    payout: Payout
    became_paid: bool
    before: dict[str, Any]


def _payout_snapshot(p: Payout) -> dict[str, Any]:
    return {
        "status": p.status,
        "amount": str(p.amount),
        "paid_at": p.paid_at,
        "payment_method": p.payment_method,
        "payment_reference": p.payment_reference,
    }


def _require_declared(p: Payout) -> None:
    if p.distribution.status != DistributionStatus.DECLARED.value:
        raise StateConflictError(
            f"payouts can only be settled once the distribution is DECLARED (status is {p.distribution.status})",
            context={"payout_id": p.id, "distribution_id": p.distribution_id},
        )


def _apply_row(db: Session, row: dict[str, Any], *, distribution_id: Optional[int]) -> RowOutcome:
    payout_id = row.get("payout_id")
    if payout_id is None:
        raise ValidationError("payout_id is required")

    p = must_get_payout(db, payout_id=payout_id, lock=True)
    if distribution_id is not None and p.distribution_id != int(distribution_id):
        raise NotFoundError(
            f"payout {p.id} not found in this distribution",
            context={"payout_id": p.id, "distribution_id": distribution_id},
        )
    _require_declared(p)

    status = str(row.get("status") or "").strip().upper() or None
    if status is not None and status not in (PayoutStatus.PENDING.value, PayoutStatus.PAID.value):
        raise ValidationError(f"invalid payout status {row.get('status')!r}")

    paid_at = row.get("paid_at")
    if paid_at is not None:
        status = PayoutStatus.PAID.value

    if row.get("amount") is not None:
        amount = to_decimal(row["amount"], field="amount")
        if abs(amount - p.amount) > allocation_tolerance(1):
            raise ValidationError(
                f"amount {amount} does not match the declared payout amount {p.amount}",
                context={"payout_id": p.id},
            )

    if p.status == PayoutStatus.PAID.value and status == PayoutStatus.PENDING.value:
        raise StateConflictError("a PAID payout cannot return to PENDING", context={"payout_id": p.id})

    before = _payout_snapshot(p)
    became_paid = status == PayoutStatus.PAID.value and p.status != PayoutStatus.PAID.value
    if status == PayoutStatus.PAID.value:
        p.status = PayoutStatus.PAID.value
        p.paid_at = paid_at or p.paid_at or datetime.utcnow()
    db.add(p)
    db.flush()
    return RowOutcome(payout=p, became_paid=became_paid, before=before)


def _notify_paid(outcomes: Iterable[RowOutcome]) -> None:
    for o in outcomes:
        if o.became_paid:
            fire("notify_payout_paid", payout_id=o.payout.id, user_id=o.payout.user_id, amount=as_float(o.payout.amount))


def apply_payout_update(
    db: Session,
    *,
    actor_user_id: int,
    row: Any,
    distribution_id: Optional[int] = None,
) -> Payout:
    """
    Apply one validated import row (payout_id, status, amount, paid_at).

    A paid_at forces PAID. amount is a checksum against the declared amount,
    never an edit.
    """
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        outcome = _apply_row(db, payload_fields(row), distribution_id=distribution_id)
        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="PAYOUT_UPDATED_VIA_IMPORT",
            entity_type="Payout",
            entity_id=outcome.payout.id,
            before=outcome.before,
            after=_payout_snapshot(outcome.payout),
        )

    _notify_paid([outcome])
    return outcome.payout


def apply_payout_updates(
    db: Session,
    *,
    actor_user_id: int,
    rows: Iterable[Any],
    distribution_id: Optional[int] = None,
) -> dict[str, Any]:
    """
    All-or-nothing batch. Every row is checked; if any fails, the errors are
    raised together as one ValidationError and nothing is written.
    """
    outcomes: list[RowOutcome] = []
    errors: list[str] = []

    with unit_of_work(db):
        require_admin(db, actor_user_id)
        for i, raw in enumerate(rows, start=1):
            try:
                outcomes.append(_apply_row(db, payload_fields(raw), distribution_id=distribution_id))
            except DistributionEngineError as e:
                errors.append(f"Row {i}: {e.detail}")

        if errors:
            raise ValidationError("payout import rejected", context={"errors": errors})

        for o in outcomes:
            audit_write(
                db,
                actor_user_id=actor_user_id,
                action="PAYOUT_UPDATED_VIA_IMPORT",
                entity_type="Payout",
                entity_id=o.payout.id,
                before=o.before,
                after=_payout_snapshot(o.payout),
                reason="bulk payout import",
            )

    log.info(
        "payout_import_applied rows=%d",
        len(outcomes),
        extra={"distribution_id": distribution_id, "actor_user_id": actor_user_id},
    )
    _notify_paid(outcomes)
    return {"updated": len(outcomes), "paid": [o.payout.id for o in outcomes if o.became_paid]}


def mark_payout_paid(
    db: Session,
    *,
    actor_user_id: int,
    payout_id: int,
    payment_method: str,
    payment_reference: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> Payout:
    method = str(payment_method or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"unknown payment method {payment_method!r}")
    reference = (payment_reference or "").strip() or None
    if method != WALLET and reference is None:
        raise ValidationError("payment_reference is required for non-wallet payments")

    with unit_of_work(db):
        require_admin(db, actor_user_id)
        p = must_get_payout(db, payout_id=payout_id, lock=True)
        _require_declared(p)
        if p.status == PayoutStatus.PAID.value:
            raise StateConflictError("payout is already paid", context={"payout_id": p.id})

        before = _payout_snapshot(p)
        p.status = PayoutStatus.PAID.value
        p.paid_at = paid_at or datetime.utcnow()
        p.payment_method = method
        p.payment_reference = reference
        if notes is not None:
            p.notes = notes
        db.add(p)
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="PAYOUT_MARKED_PAID",
            entity_type="Payout",
            entity_id=p.id,
            before=before,
            after=_payout_snapshot(p),
        )

    log.info("payout_marked_paid method=%s", method, extra={"payout_id": p.id, "actor_user_id": actor_user_id})
    fire("notify_payout_paid", payout_id=p.id, user_id=p.user_id, amount=as_float(p.amount))
    return p
