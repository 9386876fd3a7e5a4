# payout_engine/domain/allocation.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Union

from ..config import settings
from .errors import IntegrityError, ValidationError
from .money import money_sum, quantize_money, to_decimal

INVESTOR = "investor"
UNSOLD_INVENTORY = "unsold_inventory"


@dataclass(frozen=True)
class Investor:
    user_id: int

    kind = INVESTOR

    def sort_key(self) -> tuple[int, int]:
        return (0, self.user_id)


@dataclass(frozen=True)
class UnsoldInventory:
    """Shares issued but not yet bought. Receives the unsold fraction of the pool."""

    kind = UNSOLD_INVENTORY
    user_id = None

    def sort_key(self) -> tuple[int, int]:
        return (1, 0)


HolderRef = Union[Investor, UnsoldInventory]

UNSOLD = UnsoldInventory()


def holder_from_row(holder_kind: str, user_id: Optional[int]) -> HolderRef:
    if holder_kind == UNSOLD_INVENTORY:
        return UNSOLD
    if user_id is None:
        raise IntegrityError("investor payout without user_id")
    return Investor(int(user_id))


@dataclass(frozen=True)
class Allocation:
    holder: HolderRef
    shares: int
    amount: Decimal  # rounded, ready to persist


def unrounded_share_of(net_distributable: Decimal, shares: int, total_shares: int) -> Decimal:
    return Decimal(shares) / Decimal(total_shares) * net_distributable


def allocate(
    net_distributable: Decimal,
    holders: Mapping[HolderRef, int],
    total_shares: int,
) -> list[Allocation]:
    """
    Pro-rata split of the pool over every issued share.

    amount = shares / total_shares * net, computed at full precision and rounded
    once, half-up, per holder. Rounding residue is not pushed onto any holder.
    """
    net = to_decimal(net_distributable, field="net_distributable")
    if int(total_shares) <= 0:
        raise ValidationError("total_shares must be > 0")

    for h, s in holders.items():
        if int(s) < 0:
            raise ValidationError(f"negative shares for holder {h!r}")

    held = sum(int(s) for s in holders.values())
    if held > int(total_shares):
        raise IntegrityError(
            f"holders own {held} shares but only {total_shares} were issued",
            context={"held": held, "total_shares": int(total_shares)},
        )

    out: list[Allocation] = []
    for h in sorted(holders, key=lambda x: x.sort_key()):
        s = int(holders[h])
        out.append(Allocation(holder=h, shares=s, amount=quantize_money(unrounded_share_of(net, s, int(total_shares)))))
    return out


def allocation_tolerance(holder_count: int) -> Decimal:
    return to_decimal(settings.rounding_tolerance_per_holder) * Decimal(max(int(holder_count), 1))


def check_allocation_sum(allocations: list[Allocation], net_distributable: Decimal, total_shares: int) -> Decimal:
    """
    Returns the rounding residue (sum - expected). Raises IntegrityError when
    it exceeds the per-holder bound.

    expected is the pool share of the holders present, which equals the whole
    pool when every issued share has a holder.
    """
    held = sum(a.shares for a in allocations)
    expected = Decimal(held) / Decimal(int(total_shares)) * to_decimal(net_distributable)
    residue = money_sum(a.amount for a in allocations) - expected
    if abs(residue) > allocation_tolerance(len(allocations)):
        raise IntegrityError(
            "payout sum diverges from net distributable beyond rounding tolerance",
            context={"residue": str(residue), "holders": len(allocations)},
        )
    return residue
