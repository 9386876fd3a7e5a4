# tests/conftest.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payout_engine import models  # noqa: F401
from payout_engine.db import Base, configure_sqlite
from payout_engine.models import AppUser, Investment, Property
from payout_engine.services.notifications import Notifier, set_notifier
from payout_engine.services.recalculation import register_event_handlers


@pytest.fixture()
def session_factory():
    eng = configure_sqlite(
        create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
    )
    Base.metadata.create_all(bind=eng)
    factory = sessionmaker(bind=eng, autoflush=False, expire_on_commit=False, future=True)
    yield factory
    eng.dispose()


@pytest.fixture()
def db(session_factory):
    register_event_handlers()
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture(autouse=True)
def _reset_notifier():
    set_notifier(None)
    yield
    set_notifier(None)


def mk_user(db, email: str, role: str = "investor") -> AppUser:
    u = AppUser(email=email, display_name=email.split("@")[0], role=role, created_at=datetime.utcnow())
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def mk_property(db, *, total_shares: int = 100_000, slug: str = "lekki-flat", price: str = "1000") -> Property:
    p = Property(
        name=slug.replace("-", " ").title(),
        slug=slug,
        total_shares=total_shares,
        price_per_share=Decimal(price),
        available_shares=total_shares,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def mk_investment(db, *, user: AppUser, prop: Property, shares: int, status: str = "CONFIRMED") -> Investment:
    now = datetime.utcnow()
    inv = Investment(
        user_id=user.id,
        property_id=prop.id,
        shares=shares,
        price_per_share_at_purchase=prop.price_per_share,
        total_amount=prop.price_per_share * shares,
        status=status,
        confirmed_at=now if status == "CONFIRMED" else None,
        created_at=now,
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)
    return inv


def statement_payload(prop: Property, **overrides) -> dict:
    data = {
        "property_id": prop.id,
        "period_start": date(2026, 1, 1),
        "period_end": date(2026, 1, 31),
        "gross_revenue": Decimal("10000"),
        "operating_costs": Decimal("1500"),
        "management_fee": Decimal("1000"),
        "income_adjustment": Decimal("0"),
    }
    data.update(overrides)
    return data


@pytest.fixture()
def admin(db) -> AppUser:
    return mk_user(db, "admin@test.local", role="admin")


@pytest.fixture()
def scenario(db, admin):
    """100000-share property, 80000 sold: investor A 5000, investor B 75000."""
    prop = mk_property(db)
    a = mk_user(db, "a@test.local")
    b = mk_user(db, "b@test.local")
    mk_investment(db, user=a, prop=prop, shares=5_000)
    mk_investment(db, user=b, prop=prop, shares=75_000)
    return {"property": prop, "a": a, "b": b, "admin": admin}


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def notify_distribution_pending_approval(self, **kw) -> None:
        self.events.append(("pending_approval", kw))

    def notify_distribution_declared(self, **kw) -> None:
        self.events.append(("declared", kw))

    def notify_payout_paid(self, **kw) -> None:
        self.events.append(("payout_paid", kw))


@pytest.fixture()
def notifier() -> RecordingNotifier:
    n = RecordingNotifier()
    set_notifier(n)
    return n
