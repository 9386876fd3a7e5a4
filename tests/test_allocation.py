# tests/test_allocation.py
from __future__ import annotations

from decimal import Decimal

import pytest

from payout_engine.domain.allocation import (
    UNSOLD,
    Allocation,
    Investor,
    allocate,
    allocation_tolerance,
    check_allocation_sum,
    holder_from_row,
)
from payout_engine.domain.errors import IntegrityError, ValidationError


def test_scenario_investor_and_unsold_inventory():
    holders = {UNSOLD: 20_000, Investor(2): 75_000, Investor(1): 5_000}
    out = allocate(Decimal("7500"), holders, 100_000)

    assert [a.holder for a in out] == [Investor(1), Investor(2), UNSOLD]
    assert [a.amount for a in out] == [Decimal("375.00"), Decimal("5625.00"), Decimal("1500.00")]
    assert sum(a.amount for a in out) == Decimal("7500")
    assert check_allocation_sum(out, Decimal("7500"), 100_000) == 0


def test_rounding_residue_is_not_reconciled_but_bounded():
    holders = {Investor(1): 1, Investor(2): 1, Investor(3): 1}
    out = allocate(Decimal("100.00"), holders, 3)

    assert [a.amount for a in out] == [Decimal("33.33")] * 3
    residue = check_allocation_sum(out, Decimal("100.00"), 3)
    assert residue == Decimal("-0.01")
    assert abs(residue) <= allocation_tolerance(3)


def test_half_up_rounding():
    out = allocate(Decimal("0.05"), {Investor(1): 1, UNSOLD: 1}, 2)
    assert [a.amount for a in out] == [Decimal("0.03"), Decimal("0.03")]


def test_sum_check_rejects_drift_beyond_tolerance():
    good = allocate(Decimal("7500"), {Investor(1): 5_000, UNSOLD: 95_000}, 100_000)
    tampered = [Allocation(holder=good[0].holder, shares=good[0].shares, amount=Decimal("400.00")), good[1]]
    with pytest.raises(IntegrityError):
        check_allocation_sum(tampered, Decimal("7500"), 100_000)


def test_invalid_holdings():
    with pytest.raises(ValidationError):
        allocate(Decimal("10"), {Investor(1): 1}, 0)
    with pytest.raises(ValidationError):
        allocate(Decimal("10"), {Investor(1): -1}, 10)
    with pytest.raises(IntegrityError):
        allocate(Decimal("10"), {Investor(1): 8, Investor(2): 5}, 10)


def test_holder_from_row():
    assert holder_from_row("unsold_inventory", None) == UNSOLD
    assert holder_from_row("investor", 7) == Investor(7)
    with pytest.raises(IntegrityError):
        holder_from_row("investor", None)
