# payout_engine/services/admin.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..domain.errors import Forbidden
from ..models import AppUser

ADMIN_ROLE = "admin"


def require_admin(db: Session, actor_user_id: Optional[int]) -> AppUser:
    """
    Capability check used by every mutating engine action.
    How the actor was authenticated is not this module's concern.
    """
    if actor_user_id is None:
        raise Forbidden("admin access required")
    user = db.get(AppUser, int(actor_user_id))
    if user is None or (user.role or "").lower() != ADMIN_ROLE:
        raise Forbidden("admin access required", context={"actor_user_id": actor_user_id})
    return user
