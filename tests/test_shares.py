# tests/test_shares.py
from __future__ import annotations

from datetime import datetime

import pytest

from conftest import mk_investment, mk_property, mk_user
from payout_engine.domain.allocation import UNSOLD, Investor
from payout_engine.domain.errors import IntegrityError, NotFoundError
from payout_engine.services.shares import refresh_available_shares, resolve_outstanding_shares


def test_holders_including_unsold_cover_every_issued_share(db, scenario):
    prop, a, b = scenario["property"], scenario["a"], scenario["b"]
    r = resolve_outstanding_shares(db, property_id=prop.id)

    assert r.total_outstanding == 80_000
    assert r.unsold_shares == 20_000
    assert r.per_holder == {Investor(a.id): 5_000, Investor(b.id): 75_000, UNSOLD: 20_000}
    assert sum(r.per_holder.values()) == prop.total_shares
    assert r.investor_count == 2


def test_only_confirmed_investments_count(db, scenario):
    prop = scenario["property"]
    c = mk_user(db, "c@test.local")
    mk_investment(db, user=c, prop=prop, shares=1_000, status="PENDING")
    mk_investment(db, user=c, prop=prop, shares=2_000, status="CANCELLED")

    r = resolve_outstanding_shares(db, property_id=prop.id)
    assert Investor(c.id) not in r.per_holder
    assert r.per_holder[UNSOLD] == 20_000


def test_cached_available_shares_is_never_consulted(db, scenario):
    prop = scenario["property"]
    prop.available_shares = 99
    db.commit()

    r = resolve_outstanding_shares(db, property_id=prop.id)
    assert r.unsold_shares == 20_000

    assert refresh_available_shares(db, property_id=prop.id) == 20_000
    db.commit()
    assert prop.available_shares == 20_000


def test_multiple_purchases_group_by_user(db, scenario):
    prop, a = scenario["property"], scenario["a"]
    mk_investment(db, user=a, prop=prop, shares=2_500)

    r = resolve_outstanding_shares(db, property_id=prop.id)
    assert r.per_holder[Investor(a.id)] == 7_500
    assert r.per_holder[UNSOLD] == 17_500


def test_as_of_excludes_later_confirmations(db, scenario):
    prop = scenario["property"]
    late = mk_user(db, "late@test.local")
    inv = mk_investment(db, user=late, prop=prop, shares=10_000)
    inv.confirmed_at = datetime(2030, 1, 1)
    db.commit()

    r = resolve_outstanding_shares(db, property_id=prop.id, as_of=datetime(2029, 12, 31))
    assert Investor(late.id) not in r.per_holder
    assert sum(r.per_holder.values()) == prop.total_shares


def test_fully_sold_property_has_no_unsold_holder(db, admin):
    prop = mk_property(db, total_shares=10, slug="small")
    u = mk_user(db, "u@test.local")
    mk_investment(db, user=u, prop=prop, shares=10)

    r = resolve_outstanding_shares(db, property_id=prop.id)
    assert UNSOLD not in r.per_holder
    assert r.per_holder == {Investor(u.id): 10}


def test_oversubscription_is_an_integrity_error(db, admin):
    prop = mk_property(db, total_shares=10, slug="over")
    u = mk_user(db, "u@test.local")
    mk_investment(db, user=u, prop=prop, shares=8)
    mk_investment(db, user=u, prop=prop, shares=5)

    with pytest.raises(IntegrityError):
        resolve_outstanding_shares(db, property_id=prop.id)


def test_unknown_property(db):
    with pytest.raises(NotFoundError):
        resolve_outstanding_shares(db, property_id=999)
