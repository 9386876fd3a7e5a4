# payout_engine/services/income_views.py
from __future__ import annotations

import calendar
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.distribution_states import DistributionStatus, PayoutStatus, display_status
from ..domain.money import ZERO, as_float
from ..models import Distribution, Investment, Payout, RentalStatement
from .ownership import must_get_property
from .shares import CONFIRMED

# -----------------------------------------------------------------------------
# Dashboard read views
# -----------------------------------------------------------------------------
# Investors only ever see payouts of DECLARED distributions; drafts and
# pending approvals can still change. Everything returned is float/date/str.
# -----------------------------------------------------------------------------


def _declared_payouts(db: Session, *, user_id: int) -> list[Payout]:
    q = (
        select(Payout)
        .join(Distribution, Distribution.id == Payout.distribution_id)
        .where(
            Payout.user_id == int(user_id),
            Distribution.status == DistributionStatus.DECLARED.value,
        )
        .order_by(Payout.created_at.desc(), Payout.id.desc())
    )
    return list(db.scalars(q).all())


def payout_view(p: Payout) -> dict[str, Any]:
    stmt = p.statement
    return {
        "id": p.id,
        "distribution_id": p.distribution_id,
        "property_id": p.property_id,
        "property_name": p.property.name,
        "rental_statement_id": p.rental_statement_id,
        "period_start": stmt.period_start,
        "period_end": stmt.period_end,
        "shares_at_record": p.shares_at_record,
        "amount": as_float(p.amount),
        "status": p.status,
        "paid_at": p.paid_at,
    }


def get_user_monthly_distributions(db: Session, *, user_id: int) -> list[dict[str, Any]]:
    """Declared payouts grouped by the statement's starting month, newest first."""
    groups: dict[str, dict[str, Any]] = {}
    for p in _declared_payouts(db, user_id=user_id):
        key = p.statement.period_start.strftime("%Y-%m")
        g = groups.setdefault(key, {"month": key, "payouts": [], "total": ZERO})
        g["payouts"].append(payout_view(p))
        g["total"] += p.amount

    out = []
    for key in sorted(groups, reverse=True):
        g = groups[key]
        out.append({"month": key, "total_amount": as_float(g["total"]), "payouts": g["payouts"]})
    return out


def get_user_distributions_by_property(db: Session, *, user_id: int) -> list[dict[str, Any]]:
    groups: "OrderedDict[int, dict[str, Any]]" = OrderedDict()
    for p in _declared_payouts(db, user_id=user_id):
        g = groups.get(p.property_id)
        if g is None:
            prop = p.property
            g = groups[p.property_id] = {
                "property": {
                    "id": prop.id,
                    "name": prop.name,
                    "slug": prop.slug,
                    "total_shares": prop.total_shares,
                },
                "payouts": [],
                "total": ZERO,
            }
        g["payouts"].append(payout_view(p))
        g["total"] += p.amount

    return [
        {"property": g["property"], "total_amount": as_float(g["total"]), "payouts": g["payouts"]}
        for g in groups.values()
    ]


def get_property_rental_statements(db: Session, *, property_id: int) -> list[dict[str, Any]]:
    prop = must_get_property(db, property_id=property_id)
    stmts = db.scalars(
        select(RentalStatement)
        .where(RentalStatement.property_id == prop.id)
        .order_by(RentalStatement.period_start.desc(), RentalStatement.id.desc())
    ).all()

    out = []
    for s in stmts:
        dist = s.distribution
        dist_view = None
        if dist is not None:
            statuses = [p.status for p in dist.payouts]
            dist_view = {
                "id": dist.id,
                "status": dist.status,
                "display_status": display_status(dist.status, statuses),
                "total_distributed": as_float(dist.total_distributed),
                "payouts": len(statuses),
                "paid_payouts": sum(1 for x in statuses if x == PayoutStatus.PAID.value),
            }
        out.append(
            {
                "id": s.id,
                "period_start": s.period_start,
                "period_end": s.period_end,
                "gross_revenue": as_float(s.gross_revenue),
                "operating_costs": as_float(s.operating_costs),
                "management_fee": as_float(s.management_fee),
                "income_adjustment": as_float(s.income_adjustment),
                "net_distributable": as_float(s.net_distributable),
                "occupancy_rate_pct": as_float(s.occupancy_rate_pct),
                "adr": as_float(s.adr),
                "distribution": dist_view,
            }
        )
    return out


def get_income_over_time(db: Session, *, user_id: int) -> list[dict[str, Any]]:
    """PAID payout totals per month of payment, oldest first."""
    totals: dict[str, Decimal] = {}
    for p in _declared_payouts(db, user_id=user_id):
        if p.status != PayoutStatus.PAID.value or p.paid_at is None:
            continue
        key = p.paid_at.strftime("%Y-%m")
        totals[key] = totals.get(key, ZERO) + p.amount
    return [{"date": k, "amount": as_float(totals[k])} for k in sorted(totals)]


def _add_month(d: date) -> date:
    y, m = (d.year + 1, 1) if d.month == 12 else (d.year, d.month + 1)
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def get_next_expected_distribution_date(db: Session, *, user_id: int) -> Optional[date]:
    """One month after the latest statement period end across the user's properties."""
    property_ids = select(Investment.property_id).where(
        Investment.user_id == int(user_id),
        Investment.status == CONFIRMED,
    )
    latest = db.scalar(
        select(RentalStatement.period_end)
        .where(RentalStatement.property_id.in_(property_ids))
        .order_by(RentalStatement.period_end.desc())
        .limit(1)
    )
    if latest is None:
        return None
    return _add_month(latest)
