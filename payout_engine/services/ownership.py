# payout_engine/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.errors import NotFoundError
from ..models import AppUser, Distribution, Investment, Payout, Property, RentalStatement


def must_get_property(db: Session, *, property_id: int, lock: bool = False) -> Property:
    q = select(Property).where(Property.id == int(property_id))
    if lock:
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise NotFoundError("property not found", context={"property_id": property_id})
    return row


def must_get_statement(db: Session, *, statement_id: int, lock: bool = False) -> RentalStatement:
    q = select(RentalStatement).where(RentalStatement.id == int(statement_id))
    if lock:
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise NotFoundError("rental statement not found", context={"statement_id": statement_id})
    return row


def must_get_distribution(db: Session, *, distribution_id: int, lock: bool = False) -> Distribution:
    q = select(Distribution).where(Distribution.id == int(distribution_id))
    if lock:
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise NotFoundError("distribution not found", context={"distribution_id": distribution_id})
    return row


def must_get_payout(db: Session, *, payout_id: int, lock: bool = False) -> Payout:
    q = select(Payout).where(Payout.id == int(payout_id))
    if lock:
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise NotFoundError("payout not found", context={"payout_id": payout_id})
    return row


def must_get_investment(db: Session, *, investment_id: int) -> Investment:
    row = db.scalar(select(Investment).where(Investment.id == int(investment_id)))
    if not row:
        raise NotFoundError("investment not found", context={"investment_id": investment_id})
    return row


def must_get_user(db: Session, *, user_id: int) -> AppUser:
    row = db.get(AppUser, int(user_id))
    if not row:
        raise NotFoundError("user not found", context={"user_id": user_id})
    return row
