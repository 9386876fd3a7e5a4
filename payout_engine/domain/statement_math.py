# payout_engine/domain/statement_math.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from .errors import ValidationError
from .money import ZERO, ensure_money_precision, money_sum, quantize_money, to_decimal

COST_CATEGORIES = ("GENERAL_OPERATIONS", "MARKETING", "MAINTENANCE")


@dataclass(frozen=True)
class StatementFigures:
    gross_revenue: Decimal
    operating_costs: Decimal
    management_fee: Decimal
    income_adjustment: Decimal

    @property
    def net_distributable(self) -> Decimal:
        return compute_net_distributable(
            self.gross_revenue,
            self.operating_costs,
            self.management_fee,
            self.income_adjustment,
        )


def compute_net_distributable(
    gross_revenue: Any,
    operating_costs: Any,
    management_fee: Any,
    income_adjustment: Any = ZERO,
) -> Decimal:
    """net = gross - operating costs - management fee + signed adjustment"""
    return (
        to_decimal(gross_revenue, field="gross_revenue")
        - to_decimal(operating_costs, field="operating_costs")
        - to_decimal(management_fee, field="management_fee")
        + to_decimal(income_adjustment, field="income_adjustment")
    )


def validate_figures(f: StatementFigures) -> None:
    for name in ("gross_revenue", "operating_costs", "management_fee", "income_adjustment"):
        ensure_money_precision(getattr(f, name), field=name)
    if f.gross_revenue <= 0:
        raise ValidationError("gross_revenue must be > 0")
    if f.operating_costs < 0:
        raise ValidationError("operating_costs must be >= 0")
    if f.management_fee < 0:
        raise ValidationError("management_fee must be >= 0")


def validate_period(period_start: date, period_end: date) -> None:
    if period_end < period_start:
        raise ValidationError("period_end cannot be before period_start")


def validate_descriptives(*, occupancy_rate_pct: Optional[Decimal], adr: Optional[Decimal]) -> None:
    if occupancy_rate_pct is not None and not (ZERO <= occupancy_rate_pct <= Decimal(100)):
        raise ValidationError("occupancy_rate_pct must be between 0 and 100")
    if adr is not None and adr <= 0:
        raise ValidationError("adr must be > 0")


def normalize_cost_items(items: Optional[list[Any]]) -> Optional[list[dict[str, Any]]]:
    """
    Validate itemized costs and convert them to JSON-safe dicts.
    Accepts dicts or objects exposing description/amount/category.
    """
    if items is None:
        return None

    out: list[dict[str, Any]] = []
    for i, raw in enumerate(items):
        item = raw if isinstance(raw, dict) else raw.model_dump(exclude_none=True)
        desc = str(item.get("description") or "").strip()
        if not desc:
            raise ValidationError(f"operating_cost_items[{i}].description is required")
        amount = to_decimal(item.get("amount"), field=f"operating_cost_items[{i}].amount")
        if amount <= 0:
            raise ValidationError(f"operating_cost_items[{i}].amount must be > 0")
        ensure_money_precision(amount, field=f"operating_cost_items[{i}].amount")
        row: dict[str, Any] = {"description": desc, "amount": float(amount)}
        cat = item.get("category")
        if cat is not None:
            cat = str(cat).upper()
            if cat not in COST_CATEGORIES:
                raise ValidationError(f"operating_cost_items[{i}].category {cat!r} is not recognized")
            row["category"] = cat
        out.append(row)
    return out


def items_total(items: Optional[list[dict[str, Any]]]) -> Decimal:
    if not items:
        return ZERO
    return money_sum(to_decimal(i["amount"]) for i in items)


def persistable_net(f: StatementFigures) -> Decimal:
    return quantize_money(f.net_distributable)
