# payout_engine/services/statements.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import unit_of_work
from ..domain.audit import audit_write
from ..domain.distribution_states import ensure_statement_editable
from ..domain.errors import StateConflictError
from ..domain.events import StatementRevised, publish
from ..domain.money import to_decimal
from ..domain.prorating import prorate_cost_items
from ..domain.statement_math import (
    StatementFigures,
    items_total,
    normalize_cost_items,
    persistable_net,
    validate_descriptives,
    validate_figures,
    validate_period,
)
from ..models import RentalStatement
from ..schemas import payload_fields
from .admin import require_admin
from .ownership import must_get_property, must_get_statement
from .recalculation import register_event_handlers

log = logging.getLogger("payout_engine.statements")

# property_id is not editable
EDITABLE_FIELDS = (
    "period_start",
    "period_end",
    "gross_revenue",
    "operating_costs",
    "operating_cost_items",
    "management_fee",
    "management_fee_pct",
    "income_adjustment",
    "occupancy_rate_pct",
    "adr",
    "notes",
)

PRORATION_KEYS = ("original_amount", "monthly_amount", "breakdown")

register_event_handlers()


def _opt_decimal(v: Any, field: str):
    return None if v is None else to_decimal(v, field=field)


def _strip_proration(items: Optional[list[dict[str, Any]]]) -> Optional[list[dict[str, Any]]]:
    if items is None:
        return None
    return [{k: v for k, v in i.items() if k not in PRORATION_KEYS} for i in items]


def _snapshot(stmt: RentalStatement) -> dict[str, Any]:
    return {
        "period_start": stmt.period_start,
        "period_end": stmt.period_end,
        "gross_revenue": str(stmt.gross_revenue),
        "operating_costs": str(stmt.operating_costs),
        "management_fee": str(stmt.management_fee),
        "income_adjustment": str(stmt.income_adjustment),
        "net_distributable": str(stmt.net_distributable),
    }


def _ensure_period_free(db: Session, *, property_id: int, start, end, exclude_id: Optional[int] = None) -> None:
    q = select(RentalStatement.id).where(
        RentalStatement.property_id == property_id,
        RentalStatement.period_start == start,
        RentalStatement.period_end == end,
    )
    if exclude_id is not None:
        q = q.where(RentalStatement.id != exclude_id)
    dup = db.scalar(q)
    if dup is not None:
        raise StateConflictError(
            "a rental statement already exists for this property and period",
            context={"property_id": property_id, "statement_id": dup},
        )


def create_statement(db: Session, *, actor_user_id: int, payload: Any) -> RentalStatement:
    """
    Validate and store a rental statement. net_distributable is always derived
    here; a value sent by the caller is dropped.
    """
    data = payload_fields(payload)
    data.pop("net_distributable", None)

    with unit_of_work(db):
        require_admin(db, actor_user_id)
        prop = must_get_property(db, property_id=data["property_id"])

        start, end = data["period_start"], data["period_end"]
        validate_period(start, end)

        _ensure_period_free(db, property_id=prop.id, start=start, end=end)

        items = normalize_cost_items(data.get("operating_cost_items"))
        op = data.get("operating_costs")
        figures = StatementFigures(
            gross_revenue=to_decimal(data.get("gross_revenue"), field="gross_revenue"),
            operating_costs=items_total(items) if op is None else to_decimal(op, field="operating_costs"),
            management_fee=to_decimal(data.get("management_fee") or 0, field="management_fee"),
            income_adjustment=to_decimal(data.get("income_adjustment") or 0, field="income_adjustment"),
        )
        validate_figures(figures)

        occupancy = _opt_decimal(data.get("occupancy_rate_pct"), "occupancy_rate_pct")
        adr = _opt_decimal(data.get("adr"), "adr")
        validate_descriptives(occupancy_rate_pct=occupancy, adr=adr)

        now = datetime.utcnow()
        stmt = RentalStatement(
            property_id=prop.id,
            period_start=start,
            period_end=end,
            gross_revenue=figures.gross_revenue,
            operating_costs=figures.operating_costs,
            operating_cost_items=prorate_cost_items(items, start, end),
            management_fee=figures.management_fee,
            management_fee_pct=_opt_decimal(data.get("management_fee_pct"), "management_fee_pct"),
            income_adjustment=figures.income_adjustment,
            net_distributable=persistable_net(figures),
            occupancy_rate_pct=occupancy,
            adr=adr,
            notes=data.get("notes"),
            created_at=now,
            updated_at=now,
        )
        db.add(stmt)
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="STATEMENT_CREATED",
            entity_type="RentalStatement",
            entity_id=stmt.id,
            after=_snapshot(stmt),
        )

    log.info("statement_created", extra={"statement_id": stmt.id, "property_id": stmt.property_id})
    return stmt


def update_statement(db: Session, *, actor_user_id: int, statement_id: int, partial: Any) -> RentalStatement:
    """
    Partial update. Refused with EditConflictError once the statement's
    distribution has left DRAFT; the stored row is left as it was.

    On success a StatementRevised event is published in the same unit of work
    so DRAFT distributions re-allocate against the new net.
    """
    changes = {k: v for k, v in payload_fields(partial).items() if k in EDITABLE_FIELDS}

    with unit_of_work(db):
        require_admin(db, actor_user_id)
        stmt = must_get_statement(db, statement_id=statement_id, lock=True)
        dist = stmt.distribution
        ensure_statement_editable(dist.status if dist is not None else None)

        before = _snapshot(stmt)

        start = changes.get("period_start") or stmt.period_start
        end = changes.get("period_end") or stmt.period_end
        validate_period(start, end)
        if (start, end) != (stmt.period_start, stmt.period_end):
            _ensure_period_free(db, property_id=stmt.property_id, start=start, end=end, exclude_id=stmt.id)

        if "operating_cost_items" in changes:
            items = normalize_cost_items(changes["operating_cost_items"])
        else:
            items = _strip_proration(stmt.operating_cost_items)

        if changes.get("operating_costs") is not None:
            op = to_decimal(changes["operating_costs"], field="operating_costs")
        elif "operating_cost_items" in changes:
            op = items_total(items)
        else:
            op = stmt.operating_costs

        def pick(name: str):
            v = changes.get(name)
            return getattr(stmt, name) if v is None else to_decimal(v, field=name)

        figures = StatementFigures(
            gross_revenue=pick("gross_revenue"),
            operating_costs=op,
            management_fee=pick("management_fee"),
            income_adjustment=pick("income_adjustment"),
        )
        validate_figures(figures)

        occupancy = (
            _opt_decimal(changes["occupancy_rate_pct"], "occupancy_rate_pct")
            if "occupancy_rate_pct" in changes
            else stmt.occupancy_rate_pct
        )
        adr = _opt_decimal(changes["adr"], "adr") if "adr" in changes else stmt.adr
        validate_descriptives(occupancy_rate_pct=occupancy, adr=adr)

        stmt.period_start = start
        stmt.period_end = end
        stmt.gross_revenue = figures.gross_revenue
        stmt.operating_costs = figures.operating_costs
        stmt.operating_cost_items = prorate_cost_items(items, start, end)
        stmt.management_fee = figures.management_fee
        stmt.income_adjustment = figures.income_adjustment
        stmt.net_distributable = persistable_net(figures)
        stmt.occupancy_rate_pct = occupancy
        stmt.adr = adr
        if "management_fee_pct" in changes:
            stmt.management_fee_pct = _opt_decimal(changes["management_fee_pct"], "management_fee_pct")
        if "notes" in changes:
            stmt.notes = changes["notes"]
        stmt.updated_at = datetime.utcnow()
        db.add(stmt)
        db.flush()

        handled = publish(
            db,
            StatementRevised(
                statement_id=stmt.id,
                property_id=stmt.property_id,
                net_distributable=stmt.net_distributable,
                actor_user_id=actor_user_id,
            ),
        )

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="STATEMENT_UPDATED",
            entity_type="RentalStatement",
            entity_id=stmt.id,
            before=before,
            after={**_snapshot(stmt), "fields": sorted(changes)},
        )

    log.info(
        "statement_updated handlers=%d",
        handled,
        extra={"statement_id": stmt.id, "property_id": stmt.property_id, "actor_user_id": actor_user_id},
    )
    return stmt


def get_statement(db: Session, *, statement_id: int) -> RentalStatement:
    return must_get_statement(db, statement_id=statement_id)


def list_statements(db: Session, *, property_id: Optional[int] = None, limit: int = 200) -> list[RentalStatement]:
    q = select(RentalStatement)
    if property_id is not None:
        q = q.where(RentalStatement.property_id == int(property_id))
    q = q.order_by(RentalStatement.period_start.desc(), RentalStatement.id.desc()).limit(int(limit))
    return list(db.scalars(q).all())


def delete_statement(db: Session, *, actor_user_id: int, statement_id: int) -> dict[str, Any]:
    """Only while there is no distribution or it is still a DRAFT; the draft goes with it."""
    with unit_of_work(db):
        require_admin(db, actor_user_id)
        stmt = must_get_statement(db, statement_id=statement_id, lock=True)
        dist = stmt.distribution
        ensure_statement_editable(dist.status if dist is not None else None)

        before = _snapshot(stmt)
        removed_dist = None
        if dist is not None:
            removed_dist = dist.id
            db.delete(dist)
            db.flush()
        db.delete(stmt)
        db.flush()

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="STATEMENT_DELETED",
            entity_type="RentalStatement",
            entity_id=statement_id,
            before=before,
            after={"draft_distribution_deleted": removed_dist},
        )

    log.info("statement_deleted", extra={"statement_id": statement_id})
    return {"ok": True, "statement_id": statement_id, "draft_distribution_deleted": removed_dist}


def export_operating_cost_items(db: Session, *, statement_id: int) -> list[dict[str, Any]]:
    """Flat expense rows for the statement's download."""
    stmt = must_get_statement(db, statement_id=statement_id)
    rows: list[dict[str, Any]] = []
    for item in stmt.operating_cost_items or []:
        rows.append(
            {
                "statement_id": stmt.id,
                "property_name": stmt.property.name,
                "period_start": stmt.period_start.isoformat(),
                "period_end": stmt.period_end.isoformat(),
                "description": item.get("description"),
                "category": item.get("category") or "",
                "amount": float(item.get("original_amount", item.get("amount"))),
                "monthly_amount": item.get("monthly_amount"),
            }
        )
    return rows
