# tests/test_payouts.py
from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import select

from conftest import statement_payload
from payout_engine.domain.errors import NotFoundError, StateConflictError, ValidationError
from payout_engine.models import AuditEvent, Payout
from payout_engine.services.distributions import (
    approve_distribution,
    create_draft_distribution,
    declare_distribution,
    distribution_label,
    submit_for_approval,
)
from payout_engine.services.payouts import (
    apply_payout_update,
    apply_payout_updates,
    mark_payout_paid,
)
from payout_engine.services.statements import create_statement


def _declared(db, sc):
    admin = sc["admin"]
    stmt = create_statement(db, actor_user_id=admin.id, payload=statement_payload(sc["property"]))
    dist = create_draft_distribution(db, actor_user_id=admin.id, statement_id=stmt.id)
    submit_for_approval(db, actor_user_id=admin.id, distribution_id=dist.id)
    approve_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    declare_distribution(db, actor_user_id=admin.id, distribution_id=dist.id)
    return dist


def _by_user(dist, user):
    return [p for p in dist.payouts if p.user_id == user.id][0]


def test_paid_at_forces_paid(db, scenario, notifier):
    dist = _declared(db, scenario)
    p = _by_user(dist, scenario["a"])
    when = datetime(2026, 2, 10, 9, 30)

    apply_payout_update(
        db,
        actor_user_id=scenario["admin"].id,
        row={"payout_id": p.id, "status": "pending", "paid_at": when},
        distribution_id=dist.id,
    )

    assert p.status == "PAID"
    assert p.paid_at == when
    assert notifier.events[-1] == ("payout_paid", {"payout_id": p.id, "user_id": scenario["a"].id, "amount": 375.0})


def test_import_amount_is_a_checksum(db, scenario):
    dist = _declared(db, scenario)
    p = _by_user(dist, scenario["a"])

    apply_payout_update(
        db,
        actor_user_id=scenario["admin"].id,
        row={"payout_id": p.id, "status": "PAID", "amount": "375.00"},
    )
    assert p.status == "PAID"

    q = _by_user(dist, scenario["b"])
    with pytest.raises(ValidationError):
        apply_payout_update(db, actor_user_id=scenario["admin"].id, row={"payout_id": q.id, "amount": 1})


def test_payout_from_other_distribution_is_not_found(db, scenario):
    dist = _declared(db, scenario)
    p = dist.payouts[0]
    with pytest.raises(NotFoundError):
        apply_payout_update(
            db,
            actor_user_id=scenario["admin"].id,
            row={"payout_id": p.id, "status": "PAID"},
            distribution_id=dist.id + 1,
        )


def test_undeclared_payouts_cannot_be_settled(db, scenario):
    admin = scenario["admin"]
    stmt = create_statement(db, actor_user_id=admin.id, payload=statement_payload(scenario["property"]))
    dist = create_draft_distribution(db, actor_user_id=admin.id, statement_id=stmt.id)

    with pytest.raises(StateConflictError):
        apply_payout_update(db, actor_user_id=admin.id, row={"payout_id": dist.payouts[0].id, "status": "PAID"})
    with pytest.raises(StateConflictError):
        mark_payout_paid(db, actor_user_id=admin.id, payout_id=dist.payouts[0].id, payment_method="WALLET")


def test_paid_cannot_return_to_pending(db, scenario):
    dist = _declared(db, scenario)
    p = _by_user(dist, scenario["a"])
    apply_payout_update(db, actor_user_id=scenario["admin"].id, row={"payout_id": p.id, "status": "PAID"})

    with pytest.raises(StateConflictError):
        apply_payout_update(db, actor_user_id=scenario["admin"].id, row={"payout_id": p.id, "status": "PENDING"})


def test_batch_is_all_or_nothing(db, scenario):
    dist = _declared(db, scenario)
    a, b = _by_user(dist, scenario["a"]), _by_user(dist, scenario["b"])

    with pytest.raises(ValidationError) as ei:
        apply_payout_updates(
            db,
            actor_user_id=scenario["admin"].id,
            distribution_id=dist.id,
            rows=[
                {"payout_id": a.id, "status": "PAID"},
                {"payout_id": b.id, "status": "BOUNCED"},
                {"payout_id": 9999, "status": "PAID"},
            ],
        )

    errors = ei.value.context["errors"]
    assert len(errors) == 2
    assert errors[0].startswith("Row 2:")
    assert errors[1].startswith("Row 3:")

    db.expire_all()
    assert db.get(Payout, a.id).status == "PENDING"


def test_batch_marks_every_row(db, scenario, notifier):
    dist = _declared(db, scenario)
    rows = [{"payout_id": p.id, "status": "PAID"} for p in dist.payouts]

    out = apply_payout_updates(db, actor_user_id=scenario["admin"].id, distribution_id=dist.id, rows=rows)

    assert out["updated"] == 3
    assert sorted(out["paid"]) == sorted(p.id for p in dist.payouts)
    assert len([e for e in notifier.events if e[0] == "payout_paid"]) == 3
    db.refresh(dist)
    assert distribution_label(dist) == "PAID"


def test_mark_paid_requires_reference_off_wallet(db, scenario):
    dist = _declared(db, scenario)
    p = _by_user(dist, scenario["b"])

    with pytest.raises(ValidationError):
        mark_payout_paid(db, actor_user_id=scenario["admin"].id, payout_id=p.id, payment_method="BANK_TRANSFER")
    with pytest.raises(ValidationError):
        mark_payout_paid(db, actor_user_id=scenario["admin"].id, payout_id=p.id, payment_method="CRYPTO")

    mark_payout_paid(
        db,
        actor_user_id=scenario["admin"].id,
        payout_id=p.id,
        payment_method="bank_transfer",
        payment_reference=" TRF-0042 ",
    )
    assert (p.status, p.payment_method, p.payment_reference) == ("PAID", "BANK_TRANSFER", "TRF-0042")

    with pytest.raises(StateConflictError):
        mark_payout_paid(db, actor_user_id=scenario["admin"].id, payout_id=p.id, payment_method="WALLET")

    actions = db.scalars(select(AuditEvent.action).where(AuditEvent.entity_type == "Payout")).all()
    assert actions == ["PAYOUT_MARKED_PAID"]
