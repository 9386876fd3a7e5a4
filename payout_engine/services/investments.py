# payout_engine/services/investments.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.distribution_states import PayoutStatus
from ..domain.errors import NotFoundError, StateConflictError, ValidationError
from ..domain.money import quantize_money
from ..models import Investment, Payout, Transaction
from .admin import require_admin
from .ownership import must_get_investment, must_get_property, must_get_user
from .shares import CONFIRMED, confirmed_shares_by_user, refresh_available_shares

log = logging.getLogger("payout_engine.investments")

CANCELLED = "CANCELLED"


def investment_reference(investment_id: int) -> str:
    return f"{settings.investment_reference_prefix}-{int(investment_id):08d}"


def _snapshot(inv: Investment) -> dict[str, Any]:
    return {
        "user_id": inv.user_id,
        "property_id": inv.property_id,
        "shares": inv.shares,
        "total_amount": str(inv.total_amount),
        "status": inv.status,
    }


def purchase_shares(
    db: Session,
    *,
    actor_user_id: int,
    property_id: int,
    shares: int,
    user_id: Optional[int] = None,
) -> Investment:
    """
    Record a confirmed purchase plus its INVESTMENT ledger row.

    The property row is locked and the remaining supply is recomputed from
    investment rows, so two buyers cannot both take the last shares.
    Buying on behalf of another user requires admin.
    """
    shares = int(shares)
    if shares <= 0:
        raise ValidationError("shares must be > 0")

    with unit_of_work(db):
        buyer_id = int(user_id) if user_id is not None else int(actor_user_id)
        if buyer_id != int(actor_user_id):
            require_admin(db, actor_user_id)
        must_get_user(db, user_id=buyer_id)

        prop = must_get_property(db, property_id=property_id, lock=True)
        sold = sum(confirmed_shares_by_user(db, property_id=prop.id).values())
        remaining = int(prop.total_shares) - sold
        if shares > remaining:
            raise ValidationError(
                f"only {remaining} shares remain available",
                context={"property_id": prop.id, "requested": shares, "remaining": remaining},
            )

        now = datetime.utcnow()
        inv = Investment(
            user_id=buyer_id,
            property_id=prop.id,
            shares=shares,
            price_per_share_at_purchase=prop.price_per_share,
            total_amount=quantize_money(prop.price_per_share * shares),
            status=CONFIRMED,
            confirmed_at=now,
            created_at=now,
        )
        db.add(inv)
        db.flush()

        db.add(
            Transaction(
                txn_type="INVESTMENT",
                amount=inv.total_amount,
                currency=settings.ledger_currency,
                user_id=buyer_id,
                property_id=prop.id,
                investment_id=inv.id,
                reference=investment_reference(inv.id),
            )
        )
        refresh_available_shares(db, property_id=prop.id)

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="INVESTMENT_CREATED",
            entity_type="Investment",
            entity_id=inv.id,
            after=_snapshot(inv),
        )

    log.info(
        "shares_purchased shares=%d",
        shares,
        extra={"investment_id": inv.id, "property_id": inv.property_id, "actor_user_id": actor_user_id},
    )
    return inv


def cancel_investment(
    db: Session,
    *,
    actor_user_id: int,
    investment_id: int,
    reason: Optional[str] = None,
) -> Investment:
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        inv = must_get_investment(db, investment_id=investment_id)
        must_get_property(db, property_id=inv.property_id, lock=True)
        if inv.status == CANCELLED:
            raise StateConflictError("investment is already cancelled", context={"investment_id": inv.id})

        before = _snapshot(inv)
        inv.status = CANCELLED
        db.add(inv)
        db.flush()
        refresh_available_shares(db, property_id=inv.property_id)

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="INVESTMENT_CANCELLED",
            entity_type="Investment",
            entity_id=inv.id,
            before=before,
            after=_snapshot(inv),
            reason=reason,
        )
    return inv


def paid_payout_count(db: Session, *, property_id: int, user_id: int) -> int:
    return int(
        db.scalar(
            select(func.count(Payout.id)).where(
                Payout.property_id == int(property_id),
                Payout.user_id == int(user_id),
                Payout.status == PayoutStatus.PAID.value,
            )
        )
        or 0
    )


def delete_investment(
    db: Session,
    *,
    actor_user_id: int,
    investment_id: int,
    reason: Optional[str] = None,
) -> dict[str, Any]:
    """Physical removal, refused while a PAID payout exists for the same property and user."""
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        inv = must_get_investment(db, investment_id=investment_id)
        must_get_property(db, property_id=inv.property_id, lock=True)

        paid = paid_payout_count(db, property_id=inv.property_id, user_id=inv.user_id)
        if paid:
            raise StateConflictError(
                f"cannot delete investment: {paid} paid payout(s) reference this property and investor",
                context={"investment_id": inv.id, "paid": paid},
            )

        before = _snapshot(inv)
        property_id = inv.property_id
        res = db.execute(
            delete(Transaction)
            .where(Transaction.investment_id == inv.id)
            .execution_options(synchronize_session=False)
        )
        db.delete(inv)
        db.flush()
        refresh_available_shares(db, property_id=property_id)

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="INVESTMENT_DELETED",
            entity_type="Investment",
            entity_id=investment_id,
            before=before,
            after={"transactions_deleted": int(res.rowcount or 0)},
            reason=reason,
        )

    log.warning("investment_deleted", extra={"investment_id": investment_id, "actor_user_id": actor_user_id})
    return {"ok": True, "investment_id": investment_id}


def delete_transaction(db: Session, *, actor_user_id: int, transaction_id: int, reason: str) -> dict[str, Any]:
    """Ledger rows are append-only; this is the audited admin override."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("a reason is required to delete a ledger transaction")

    with unit_of_work(db):
        require_admin(db, actor_user_id)
        txn = db.get(Transaction, int(transaction_id))
        if txn is None:
            raise NotFoundError("transaction not found", context={"transaction_id": transaction_id})

        before = {
            "txn_type": txn.txn_type,
            "amount": str(txn.amount),
            "user_id": txn.user_id,
            "property_id": txn.property_id,
            "payout_id": txn.payout_id,
            "investment_id": txn.investment_id,
            "reference": txn.reference,
        }
        db.delete(txn)
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="TRANSACTION_DELETED",
            entity_type="Transaction",
            entity_id=transaction_id,
            before=before,
            reason=reason,
        )

    log.warning("transaction_deleted reason=%s", reason, extra={"actor_user_id": actor_user_id})
    return {"ok": True, "transaction_id": transaction_id}


def list_transactions(
    db: Session,
    *,
    user_id: Optional[int] = None,
    property_id: Optional[int] = None,
    txn_type: Optional[str] = None,
    limit: int = 500,
) -> list[Transaction]:
    q = select(Transaction)
    if user_id is not None:
        q = q.where(Transaction.user_id == int(user_id))
    if property_id is not None:
        q = q.where(Transaction.property_id == int(property_id))
    if txn_type:
        q = q.where(Transaction.txn_type == txn_type.upper())
    return list(db.scalars(q.order_by(Transaction.id.desc()).limit(int(limit))).all())
