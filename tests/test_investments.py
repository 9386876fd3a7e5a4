# tests/test_investments.py
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from conftest import mk_property, mk_user, statement_payload
from payout_engine.domain.errors import Forbidden, StateConflictError, ValidationError
from payout_engine.models import AuditEvent, Investment, Transaction
from payout_engine.services import investments
from payout_engine.services.distributions import (
    approve_distribution,
    create_draft_distribution,
    declare_distribution,
    delete_distribution,
    submit_for_approval,
)
from payout_engine.services.investments import (
    cancel_investment,
    delete_investment,
    delete_transaction,
    list_transactions,
    purchase_shares,
)
from payout_engine.services.payouts import mark_payout_paid
from payout_engine.services.statements import create_statement


def test_purchase_writes_investment_and_ledger_row(db, admin):
    prop = mk_property(db, total_shares=1_000, slug="yaba-studio", price="250")
    u = mk_user(db, "u@test.local")

    inv = purchase_shares(db, actor_user_id=u.id, property_id=prop.id, shares=40)

    assert inv.status == "CONFIRMED"
    assert inv.total_amount == Decimal("10000.00")
    txns = list_transactions(db, user_id=u.id)
    assert [(t.txn_type, t.amount, t.reference) for t in txns] == [
        ("INVESTMENT", Decimal("10000.00"), f"INV-{inv.id:08d}")
    ]
    db.refresh(prop)
    assert prop.available_shares == 960


def test_purchase_cannot_oversubscribe(db, scenario):
    c = mk_user(db, "c@test.local")
    with pytest.raises(ValidationError) as ei:
        purchase_shares(db, actor_user_id=c.id, property_id=scenario["property"].id, shares=20_001)
    assert ei.value.context["remaining"] == 20_000
    assert db.scalar(select(func.count(Investment.id)).where(Investment.user_id == c.id)) == 0


def test_buying_for_someone_else_needs_admin(db, scenario):
    a, b = scenario["a"], scenario["b"]
    with pytest.raises(Forbidden):
        purchase_shares(db, actor_user_id=a.id, property_id=scenario["property"].id, shares=1, user_id=b.id)

    inv = purchase_shares(
        db, actor_user_id=scenario["admin"].id, property_id=scenario["property"].id, shares=1, user_id=b.id
    )
    assert inv.user_id == b.id


def test_cancel_frees_shares(db, scenario):
    c = mk_user(db, "c@test.local")
    inv = purchase_shares(db, actor_user_id=c.id, property_id=scenario["property"].id, shares=20_000)
    cancel_investment(db, actor_user_id=scenario["admin"].id, investment_id=inv.id, reason="refund")

    assert inv.status == "CANCELLED"
    db.refresh(scenario["property"])
    assert scenario["property"].available_shares == 20_000
    with pytest.raises(StateConflictError):
        cancel_investment(db, actor_user_id=scenario["admin"].id, investment_id=inv.id)


def test_share_corrections_lock_the_property_row(db, scenario, monkeypatch):
    admin, prop = scenario["admin"], scenario["property"]
    first = purchase_shares(db, actor_user_id=admin.id, property_id=prop.id, shares=100, user_id=scenario["a"].id)
    second = purchase_shares(db, actor_user_id=admin.id, property_id=prop.id, shares=200, user_id=scenario["b"].id)

    locked = []
    real = investments.must_get_property

    def _spy(db, *, property_id, lock=False):
        locked.append((property_id, lock))
        return real(db, property_id=property_id, lock=lock)

    monkeypatch.setattr(investments, "must_get_property", _spy)

    cancel_investment(db, actor_user_id=admin.id, investment_id=first.id)
    delete_investment(db, actor_user_id=admin.id, investment_id=second.id)

    assert locked == [(prop.id, True), (prop.id, True)]


def _declared(db, sc):
    admin = sc["admin"]
    stmt = create_statement(db, actor_user_id=admin.id, payload=statement_payload(sc["property"]))
    dist = create_draft_distribution(db, actor_user_id=admin.id, statement_id=stmt.id)
    submit_for_approval(db, actor_user_id=admin.id, distribution_id=dist.id)
    approve_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    declare_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    return dist


def test_delete_investment_blocked_by_paid_payout(db, scenario):
    admin, a = scenario["admin"], scenario["a"]
    inv = purchase_shares(db, actor_user_id=admin.id, property_id=scenario["property"].id, shares=100, user_id=a.id)
    dist = _declared(db, scenario)
    p = [x for x in dist.payouts if x.user_id == a.id][0]
    mark_payout_paid(db, actor_user_id=admin.id, payout_id=p.id, payment_method="WALLET")

    with pytest.raises(StateConflictError):
        delete_investment(db, actor_user_id=admin.id, investment_id=inv.id)


def test_delete_investment_removes_its_ledger_rows(db, scenario):
    admin, a = scenario["admin"], scenario["a"]
    inv = purchase_shares(db, actor_user_id=admin.id, property_id=scenario["property"].id, shares=100, user_id=a.id)

    delete_investment(db, actor_user_id=admin.id, investment_id=inv.id, reason="entered twice")

    assert db.get(Investment, inv.id) is None
    assert db.scalar(select(func.count(Transaction.id)).where(Transaction.investment_id == inv.id)) == 0
    db.refresh(scenario["property"])
    assert scenario["property"].available_shares == 20_000


def test_delete_transaction_needs_reason_and_is_audited(db, scenario):
    admin = scenario["admin"]
    inv = purchase_shares(db, actor_user_id=admin.id, property_id=scenario["property"].id, shares=5)
    txn = list_transactions(db, txn_type="investment")[0]
    assert txn.investment_id == inv.id

    with pytest.raises(ValidationError):
        delete_transaction(db, actor_user_id=admin.id, transaction_id=txn.id, reason="  ")

    delete_transaction(db, actor_user_id=admin.id, transaction_id=txn.id, reason="duplicate bank import")
    assert db.get(Transaction, txn.id) is None

    ev = db.scalars(select(AuditEvent).where(AuditEvent.action == "TRANSACTION_DELETED")).one()
    assert ev.reason == "duplicate bank import"
    assert ev.entity_id == str(txn.id)


def test_delete_declared_distribution(db, scenario):
    admin = scenario["admin"]
    dist = _declared(db, scenario)

    out = delete_distribution(db, actor_user_id=admin.id, distribution_id=dist.id, reason="wrong statement")

    assert out == {"ok": True, "payouts_deleted": 3, "transactions_deleted": 3}
    assert list_transactions(db, txn_type="PAYOUT") == []


def test_delete_distribution_rules(db, scenario):
    admin = scenario["admin"]
    stmt = create_statement(db, actor_user_id=admin.id, payload=statement_payload(scenario["property"]))
    draft = create_draft_distribution(db, actor_user_id=admin.id, statement_id=stmt.id)
    with pytest.raises(StateConflictError):
        delete_distribution(db, actor_user_id=admin.id, distribution_id=draft.id)

    submit_for_approval(db, actor_user_id=admin.id, distribution_id=draft.id)
    approve_distribution(db, actor_user_id=admin.id, distribution_id=draft.id)
    declare_distribution(db, actor_user_id=admin.id, distribution_id=draft.id)
    mark_payout_paid(db, actor_user_id=admin.id, payout_id=draft.payouts[0].id, payment_method="WALLET")

    with pytest.raises(StateConflictError):
        delete_distribution(db, actor_user_id=admin.id, distribution_id=draft.id)
    assert len(list_transactions(db, txn_type="PAYOUT")) == 3
