# payout_engine/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from payout_engine.db import Base, SessionLocal, engine
from payout_engine.models import AppUser, Property, RentalStatement
from payout_engine.services.distributions import create_draft_distribution
from payout_engine.services.investments import purchase_shares
from payout_engine.services.statements import create_statement


@dataclass(frozen=True)
class SeedResult:
    admin_email: str
    property_id: int
    statement_id: Optional[int]
    distribution_id: Optional[int]


def _get_or_create_user(db: Session, email: str, display_name: str, role: str) -> AppUser:
    row = db.query(AppUser).filter(AppUser.email == email).one_or_none()
    if row:
        return row
    row = AppUser(email=email, display_name=display_name, role=role)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_property(db: Session, slug: str, name: str, total_shares: int, price: Decimal) -> Property:
    row = db.query(Property).filter(Property.slug == slug).one_or_none()
    if row:
        return row
    row = Property(slug=slug, name=name, total_shares=total_shares, price_per_share=price, available_shares=total_shares)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def seed_demo(
    *,
    admin_email: str = "admin@demo.local",
    investor_email: str = "investor@demo.local",
    total_shares: int = 100_000,
    investor_shares: int = 80_000,
    create_sample_statement: bool = True,
) -> SeedResult:
    """
    Demo property, one admin, one investor holding investor_shares, and
    optionally a statement with a DRAFT distribution ready for review.
    """
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        admin = _get_or_create_user(db, admin_email, "Admin", "admin")
        investor = _get_or_create_user(db, investor_email, "Investor", "investor")
        prop = _get_or_create_property(db, "demo-apartment", "Demo Apartment", total_shares, Decimal("1000.00"))

        if not prop.investments:
            purchase_shares(
                db,
                actor_user_id=admin.id,
                property_id=prop.id,
                shares=investor_shares,
                user_id=investor.id,
            )

        statement_id = None
        distribution_id = None
        if create_sample_statement:
            existing = db.query(RentalStatement).filter(RentalStatement.property_id == prop.id).first()
            if existing is None:
                stmt = create_statement(
                    db,
                    actor_user_id=admin.id,
                    payload={
                        "property_id": prop.id,
                        "period_start": date(2026, 1, 1),
                        "period_end": date(2026, 1, 31),
                        "gross_revenue": Decimal("10000"),
                        "operating_costs": Decimal("1500"),
                        "management_fee": Decimal("1000"),
                    },
                )
                dist = create_draft_distribution(db, actor_user_id=admin.id, statement_id=stmt.id)
                statement_id, distribution_id = stmt.id, dist.id
            else:
                statement_id = existing.id
                distribution_id = existing.distribution.id if existing.distribution else None

        return SeedResult(
            admin_email=admin.email,
            property_id=prop.id,
            statement_id=statement_id,
            distribution_id=distribution_id,
        )
    finally:
        db.close()
