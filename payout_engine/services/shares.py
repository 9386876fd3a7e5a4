# payout_engine/services/shares.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..domain.allocation import UNSOLD, HolderRef, Investor
from ..domain.errors import IntegrityError
from ..models import Investment
from .ownership import must_get_property

log = logging.getLogger("payout_engine.shares")

CONFIRMED = "CONFIRMED"


@dataclass(frozen=True)
class OutstandingShares:
    property_id: int
    total_shares: int
    total_outstanding: int  # confirmed investor shares
    per_holder: dict[HolderRef, int]  # investors + unsold inventory

    @property
    def unsold_shares(self) -> int:
        return self.total_shares - self.total_outstanding

    @property
    def investor_count(self) -> int:
        return sum(1 for h in self.per_holder if isinstance(h, Investor))

    def as_dict(self) -> dict:
        return {
            "property_id": self.property_id,
            "total_shares": self.total_shares,
            "total_outstanding": self.total_outstanding,
            "unsold_shares": self.unsold_shares,
            "per_holder": {
                ("unsold_inventory" if h == UNSOLD else str(h.user_id)): s for h, s in self.per_holder.items()
            },
        }


def confirmed_shares_by_user(db: Session, *, property_id: int, as_of: Optional[datetime] = None) -> dict[int, int]:
    effective_at = func.coalesce(Investment.confirmed_at, Investment.created_at)
    q = (
        select(Investment.user_id, func.sum(Investment.shares))
        .where(Investment.property_id == int(property_id), Investment.status == CONFIRMED)
        .group_by(Investment.user_id)
    )
    if as_of is not None:
        q = q.where(effective_at <= as_of)
    return {int(uid): int(total or 0) for uid, total in db.execute(q).all() if int(total or 0) > 0}


def resolve_outstanding_shares(
    db: Session,
    *,
    property_id: int,
    as_of: Optional[datetime] = None,
    lock: bool = False,
) -> OutstandingShares:
    """
    Who holds the property's shares at as_of (default: now).

    Always recomputed from CONFIRMED investment rows; the cached
    Property.available_shares column is never consulted. With lock=True the
    property row is locked so a concurrent purchase cannot interleave with the
    caller's write.
    """
    prop = must_get_property(db, property_id=property_id, lock=lock)
    total_shares = int(prop.total_shares)

    by_user = confirmed_shares_by_user(db, property_id=prop.id, as_of=as_of)
    sold = sum(by_user.values())
    if sold > total_shares:
        raise IntegrityError(
            f"property {prop.id} is oversubscribed: {sold} confirmed of {total_shares} issued",
            context={"property_id": prop.id, "sold": sold, "total_shares": total_shares},
        )

    per_holder: dict[HolderRef, int] = {Investor(uid): s for uid, s in sorted(by_user.items())}
    unsold = total_shares - sold
    if unsold > 0:
        per_holder[UNSOLD] = unsold

    return OutstandingShares(
        property_id=prop.id,
        total_shares=total_shares,
        total_outstanding=sold,
        per_holder=per_holder,
    )


def refresh_available_shares(db: Session, *, property_id: int) -> int:
    """Rewrite the display cache from investment rows. Flush only, no commit."""
    prop = must_get_property(db, property_id=property_id)
    sold = sum(confirmed_shares_by_user(db, property_id=prop.id).values())
    available = max(int(prop.total_shares) - sold, 0)
    if prop.available_shares != available:
        log.info(
            "available_shares_refreshed old=%s new=%s",
            prop.available_shares,
            available,
            extra={"property_id": prop.id},
        )
        prop.available_shares = available
        db.add(prop)
        db.flush()
    return available
