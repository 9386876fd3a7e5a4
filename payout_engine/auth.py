# payout_engine/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser

ROLES = ("admin", "investor")


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str
    role: str  # admin | investor

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _get_user_by_email(db: Session, *, email: str) -> AppUser | None:
    return db.scalar(select(AppUser).where(AppUser.email == email))


def get_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    """
    Dev header identity. Authentication itself lives in front of this
    service; the engine only needs to know who the actor is and their role.
    """
    email = (request.headers.get(settings.dev_header_user_email) or "").strip().lower()
    role_hint = (request.headers.get(settings.dev_header_user_role) or "investor").strip().lower()
    if not email:
        raise HTTPException(status_code=401, detail=f"Missing {settings.dev_header_user_email}")

    user = _get_user_by_email(db, email=email)
    if user is None and settings.dev_auto_provision:
        user = AppUser(
            email=email,
            display_name=email.split("@")[0],
            role=role_hint if role_hint in ROLES else "investor",
            created_at=datetime.utcnow(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)

    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")

    return Principal(user_id=int(user.id), email=str(user.email), role=str(user.role))


def require_investor_or_self(p: Principal, user_id: int) -> None:
    """Investors read only their own income; admins may read anyone's."""
    if not p.is_admin and int(p.user_id) != int(user_id):
        raise HTTPException(status_code=403, detail="Cannot read another investor's income")


def require_admin_principal(p: Principal = Depends(get_principal)) -> Principal:
    """Route dependency for admin-only reads (drafts, statements, share positions)."""
    if not p.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return p
