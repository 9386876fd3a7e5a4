# tests/test_income_views.py
from __future__ import annotations

from datetime import date, datetime

from conftest import mk_user, statement_payload
from payout_engine.services.distributions import (
    approve_distribution,
    create_draft_distribution,
    declare_distribution,
    submit_for_approval,
)
from payout_engine.services.income_views import (
    get_income_over_time,
    get_next_expected_distribution_date,
    get_property_rental_statements,
    get_user_distributions_by_property,
    get_user_monthly_distributions,
)
from payout_engine.services.payouts import mark_payout_paid
from payout_engine.services.statements import create_statement


def _draft(db, sc, **overrides):
    stmt = create_statement(db, actor_user_id=sc["admin"].id, payload=statement_payload(sc["property"], **overrides))
    return create_draft_distribution(db, actor_user_id=sc["admin"].id, statement_id=stmt.id)


def _declare(db, sc, dist):
    admin = sc["admin"]
    submit_for_approval(db, actor_user_id=admin.id, distribution_id=dist.id)
    approve_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    declare_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    return dist


def test_drafts_are_invisible_to_investors(db, scenario):
    _draft(db, scenario)
    assert get_user_monthly_distributions(db, user_id=scenario["a"].id) == []
    assert get_user_distributions_by_property(db, user_id=scenario["a"].id) == []


def test_monthly_view_groups_by_statement_month(db, scenario):
    a = scenario["a"]
    _declare(db, scenario, _draft(db, scenario))
    _declare(
        db,
        scenario,
        _draft(db, scenario, period_start=date(2026, 2, 1), period_end=date(2026, 2, 28), gross_revenue=12000),
    )

    months = get_user_monthly_distributions(db, user_id=a.id)
    assert [m["month"] for m in months] == ["2026-02", "2026-01"]
    assert [m["total_amount"] for m in months] == [475.0, 375.0]
    assert months[1]["payouts"][0]["property_name"] == "Lekki Flat"
    assert months[1]["payouts"][0]["shares_at_record"] == 5_000

    by_prop = get_user_distributions_by_property(db, user_id=a.id)
    assert len(by_prop) == 1
    assert by_prop[0]["property"]["slug"] == "lekki-flat"
    assert by_prop[0]["total_amount"] == 850.0


def test_income_over_time_counts_paid_only(db, scenario):
    a = scenario["a"]
    dist = _declare(db, scenario, _draft(db, scenario))
    assert get_income_over_time(db, user_id=a.id) == []

    p = [x for x in dist.payouts if x.user_id == a.id][0]
    mark_payout_paid(
        db,
        actor_user_id=scenario["admin"].id,
        payout_id=p.id,
        payment_method="WALLET",
        paid_at=datetime(2026, 2, 5, 12, 0),
    )
    assert get_income_over_time(db, user_id=a.id) == [{"date": "2026-02", "amount": 375.0}]


def test_property_statements_show_distribution_progress(db, scenario):
    dist = _declare(db, scenario, _draft(db, scenario))
    mark_payout_paid(db, actor_user_id=scenario["admin"].id, payout_id=dist.payouts[0].id, payment_method="WALLET")

    rows = get_property_rental_statements(db, property_id=scenario["property"].id)
    assert len(rows) == 1
    view = rows[0]["distribution"]
    assert rows[0]["net_distributable"] == 7500.0
    assert (view["status"], view["display_status"]) == ("DECLARED", "DECLARED")
    assert (view["payouts"], view["paid_payouts"]) == (3, 1)


def test_next_expected_distribution_date(db, scenario):
    _draft(db, scenario)
    assert get_next_expected_distribution_date(db, user_id=scenario["a"].id) == date(2026, 2, 28)

    loner = mk_user(db, "loner@test.local")
    assert get_next_expected_distribution_date(db, user_id=loner.id) is None
