# payout_engine/domain/prorating.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from .errors import ValidationError
from .money import quantize_money, to_decimal


def month_bounds(y: int, m: int) -> tuple[date, date]:
    last_day = calendar.monthrange(y, m)[1]
    return date(y, m, 1), date(y, m, last_day)


def _next_month_start(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def _check_period(period_start: date, period_end: date) -> None:
    if period_end < period_start:
        raise ValidationError(
            f"period_end {period_end.isoformat()} is before period_start {period_start.isoformat()}"
        )


@dataclass(frozen=True)
class MonthlyBreakdown:
    month: str  # YYYY-MM
    month_start: date
    month_end: date
    days_in_month: int
    days_in_period: int

    @property
    def proration_factor(self) -> float:
        return self.days_in_period / self.days_in_month

    def as_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "month_start": self.month_start.isoformat(),
            "month_end": self.month_end.isoformat(),
            "days_in_month": self.days_in_month,
            "days_in_period": self.days_in_period,
            "proration_factor": round(self.proration_factor, 6),
        }


def period_days(period_start: date, period_end: date) -> int:
    """Inclusive day count; a single-day period is 1 day."""
    _check_period(period_start, period_end)
    return (period_end - period_start).days + 1


def calculate_monthly_breakdown(period_start: date, period_end: date) -> list[MonthlyBreakdown]:
    """
    Split an inclusive [period_start, period_end] range into calendar months.

    days_in_period across the result always sums to period_days().
    """
    _check_period(period_start, period_end)

    out: list[MonthlyBreakdown] = []
    cur = period_start
    while cur <= period_end:
        ms, me = month_bounds(cur.year, cur.month)
        seg_end = min(me, period_end)
        out.append(
            MonthlyBreakdown(
                month=f"{cur.year}-{cur.month:02d}",
                month_start=ms,
                month_end=me,
                days_in_month=me.day,
                days_in_period=(seg_end - cur).days + 1,
            )
        )
        cur = _next_month_start(cur)
    return out


def months_spanned(period_start: date, period_end: date) -> int:
    """Number of calendar months touched; never less than 1."""
    _check_period(period_start, period_end)
    return (period_end.year - period_start.year) * 12 + (period_end.month - period_start.month) + 1


def is_spanning_period(period_start: date, period_end: date) -> bool:
    """
    True unless the period is exactly one whole calendar month.
    """
    _check_period(period_start, period_end)
    if period_start.year != period_end.year or period_start.month != period_end.month:
        return True
    if period_start.day != 1:
        return True
    return period_end.day != calendar.monthrange(period_end.year, period_end.month)[1]


def prorate_to_monthly(amount: Any, period_start: date, period_end: date) -> Decimal:
    """
    Monthly equivalent of an amount that covers the whole period:
    amount / months_spanned. Unrounded; callers round at persistence.
    """
    return to_decimal(amount) / Decimal(months_spanned(period_start, period_end))


def prorate_cost_items(
    items: Optional[list[dict[str, Any]]],
    period_start: date,
    period_end: date,
) -> Optional[list[dict[str, Any]]]:
    """
    Annotate cost items with original_amount / monthly_amount / breakdown when
    the period is not a single whole month. Otherwise items pass through.
    """
    if not items:
        return items
    if not is_spanning_period(period_start, period_end):
        return items

    breakdown = [b.as_dict() for b in calculate_monthly_breakdown(period_start, period_end)]
    out: list[dict[str, Any]] = []
    for item in items:
        amount = to_decimal(item.get("amount"), field="operating_cost_items.amount")
        monthly = quantize_money(prorate_to_monthly(amount, period_start, period_end))
        out.append(
            {
                **item,
                "original_amount": float(amount),
                "monthly_amount": float(monthly),
                "breakdown": breakdown,
            }
        )
    return out
