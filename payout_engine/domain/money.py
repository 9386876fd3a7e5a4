# payout_engine/domain/money.py
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from ..config import settings
from .errors import ValidationError

ZERO = Decimal("0")


def quantum() -> Decimal:
    return Decimal(1).scaleb(-int(settings.money_places))


def to_decimal(v: Any, *, field: str = "amount") -> Decimal:
    """
    Exact conversion for money inputs.

    floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion.
    """
    if isinstance(v, Decimal):
        out = v
    elif isinstance(v, bool):
        raise ValidationError(f"{field} must be a number")
    elif isinstance(v, int):
        out = Decimal(v)
    elif isinstance(v, float):
        out = Decimal(str(v))
    else:
        try:
            out = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number, got {v!r}")
    if not out.is_finite():
        raise ValidationError(f"{field} must be finite")
    return out


def ensure_money_precision(v: Decimal, *, field: str = "amount") -> Decimal:
    """Reject amounts finer than the stored precision instead of rounding them on write."""
    if v != v.quantize(quantum(), rounding=ROUND_HALF_UP):
        raise ValidationError(
            f"{field} has more than {settings.money_places} decimal places",
            context={"field": field, "value": str(v)},
        )
    return v


def quantize_money(v: Decimal) -> Decimal:
    """Round half-up to the persisted money precision. Only call at persistence."""
    return v.quantize(quantum(), rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def as_float(v: Optional[Decimal]) -> Optional[float]:
    """Read-view boundary: callers outside the engine never see Decimal."""
    if v is None:
        return None
    return float(v)
