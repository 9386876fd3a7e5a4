# tests/test_prorating.py
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from payout_engine.domain.errors import ValidationError
from payout_engine.domain.money import quantize_money
from payout_engine.domain.prorating import (
    calculate_monthly_breakdown,
    is_spanning_period,
    months_spanned,
    period_days,
    prorate_cost_items,
    prorate_to_monthly,
)


def test_45_day_period_breakdown_sums_to_period_length():
    start, end = date(2026, 1, 15), date(2026, 2, 28)
    rows = calculate_monthly_breakdown(start, end)

    assert [r.month for r in rows] == ["2026-01", "2026-02"]
    assert [r.days_in_period for r in rows] == [17, 28]
    assert sum(r.days_in_period for r in rows) == 45 == period_days(start, end)
    assert rows[1].proration_factor == 1.0


def test_breakdown_crosses_year_and_leap_february():
    rows = calculate_monthly_breakdown(date(2027, 12, 20), date(2028, 3, 5))
    assert [r.month for r in rows] == ["2027-12", "2028-01", "2028-02", "2028-03"]
    assert rows[2].days_in_month == 29
    assert sum(r.days_in_period for r in rows) == period_days(date(2027, 12, 20), date(2028, 3, 5))


def test_prorate_to_monthly_reconstructs_amount():
    start, end = date(2026, 1, 15), date(2026, 2, 28)
    assert prorate_to_monthly(Decimal("900"), start, end) * months_spanned(start, end) == Decimal("900")

    start, end = date(2026, 1, 15), date(2026, 3, 14)
    n = months_spanned(start, end)
    assert n == 3
    monthly = prorate_to_monthly(Decimal("1000"), start, end)
    assert quantize_money(monthly * n) == Decimal("1000.00")


def test_single_day_and_single_month_count_as_one_month():
    d = date(2026, 5, 9)
    assert months_spanned(d, d) == 1
    assert prorate_to_monthly(Decimal("250.50"), d, d) == Decimal("250.50")
    assert months_spanned(date(2026, 5, 1), date(2026, 5, 31)) == 1


def test_is_spanning_period():
    assert is_spanning_period(date(2026, 1, 1), date(2026, 1, 31)) is False
    assert is_spanning_period(date(2026, 1, 1), date(2026, 1, 30)) is True
    assert is_spanning_period(date(2026, 1, 2), date(2026, 1, 31)) is True
    assert is_spanning_period(date(2026, 12, 1), date(2027, 1, 31)) is True


def test_inverted_period_is_rejected():
    with pytest.raises(ValidationError):
        calculate_monthly_breakdown(date(2026, 2, 1), date(2026, 1, 31))
    with pytest.raises(ValidationError):
        prorate_to_monthly(Decimal("10"), date(2026, 2, 1), date(2026, 1, 31))


def test_cost_items_pass_through_for_whole_month():
    items = [{"description": "Cleaning", "amount": 1000.0}]
    assert prorate_cost_items(items, date(2026, 1, 1), date(2026, 1, 31)) is items


def test_cost_items_gain_monthly_amount_when_spanning():
    items = [{"description": "Cleaning", "amount": 1000.0, "category": "MAINTENANCE"}]
    out = prorate_cost_items(items, date(2026, 1, 15), date(2026, 3, 14))

    assert len(out) == 1
    row = out[0]
    assert row["original_amount"] == 1000.0
    assert row["monthly_amount"] == 333.33
    assert row["category"] == "MAINTENANCE"
    assert [b["month"] for b in row["breakdown"]] == ["2026-01", "2026-02", "2026-03"]
