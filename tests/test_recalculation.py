# tests/test_recalculation.py
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import mk_investment, mk_user, statement_payload
from payout_engine.domain.errors import StateConflictError
from payout_engine.models import Payout
from payout_engine.services.distributions import (
    approve_distribution,
    create_draft_distribution,
    declare_distribution,
    submit_for_approval,
)
from payout_engine.services.recalculation import fix_unsold_inventory_payouts, recompute_distribution
from payout_engine.services.statements import create_statement


def _draft(db, sc):
    stmt = create_statement(db, actor_user_id=sc["admin"].id, payload=statement_payload(sc["property"]))
    return create_draft_distribution(db, actor_user_id=sc["admin"].id, statement_id=stmt.id)


def _rows(dist) -> dict:
    return {(p.holder_kind, p.user_id): (p.shares_at_record, p.amount) for p in dist.payouts}


def test_recompute_is_idempotent(db, scenario):
    dist = _draft(db, scenario)
    first = _rows(dist)

    recompute_distribution(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)
    recompute_distribution(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)

    assert _rows(dist) == first
    assert db.scalar(select(func.count(Payout.id))) == 3


def test_recompute_picks_up_new_purchase(db, scenario):
    dist = _draft(db, scenario)
    c = mk_user(db, "c@test.local")
    mk_investment(db, user=c, prop=scenario["property"], shares=10_000)

    recompute_distribution(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)

    rows = _rows(dist)
    assert rows[("investor", c.id)] == (10_000, Decimal("750.00"))
    assert rows[("unsold_inventory", None)] == (10_000, Decimal("750.00"))
    assert sum(p.amount for p in dist.payouts) == Decimal("7500.00")


def test_recompute_refused_outside_draft(db, scenario):
    dist = _draft(db, scenario)
    submit_for_approval(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)

    with pytest.raises(StateConflictError):
        recompute_distribution(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)


def test_unsold_fix_on_draft_moves_amount(db, scenario):
    dist = _draft(db, scenario)
    c = mk_user(db, "c@test.local")
    mk_investment(db, user=c, prop=scenario["property"], shares=10_000)

    fixes = fix_unsold_inventory_payouts(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id)

    assert len(fixes) == 1
    f = fixes[0]
    assert (f.old_shares, f.new_shares) == (20_000, 10_000)
    assert (f.old_amount, f.new_amount) == (1500.0, 750.0)
    assert f.distribution_status == "DRAFT"

    unsold = [p for p in dist.payouts if p.holder_kind == "unsold_inventory"][0]
    db.refresh(unsold)
    assert unsold.shares_at_record == 10_000
    assert "10000 unsold shares" in unsold.notes


def test_unsold_fix_after_declaration_keeps_amount(db, scenario):
    admin = scenario["admin"]
    dist = _draft(db, scenario)
    submit_for_approval(db, actor_user_id=admin.id, distribution_id=dist.id)
    approve_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    declare_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)

    c = mk_user(db, "c@test.local")
    mk_investment(db, user=c, prop=scenario["property"], shares=10_000)

    fixes = fix_unsold_inventory_payouts(db, actor_user_id=admin.id)
    assert [(f.new_shares, f.old_amount, f.new_amount) for f in fixes] == [(10_000, 1500.0, 1500.0)]

    assert fix_unsold_inventory_payouts(db, actor_user_id=admin.id) == []


def test_unsold_fix_noop_when_consistent(db, scenario):
    dist = _draft(db, scenario)
    assert fix_unsold_inventory_payouts(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id) == []
