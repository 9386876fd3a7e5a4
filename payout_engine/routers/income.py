# payout_engine/routers/income.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal, require_investor_or_self
from ..db import get_db
from ..services import income_views as views

router = APIRouter(prefix="/income", tags=["income"])


@router.get("/users/{user_id}/monthly", response_model=list[dict])
def monthly(user_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    require_investor_or_self(p, user_id)
    return views.get_user_monthly_distributions(db, user_id=user_id)


@router.get("/users/{user_id}/by-property", response_model=list[dict])
def by_property(user_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    require_investor_or_self(p, user_id)
    return views.get_user_distributions_by_property(db, user_id=user_id)


@router.get("/users/{user_id}/over-time", response_model=list[dict])
def over_time(user_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    require_investor_or_self(p, user_id)
    return views.get_income_over_time(db, user_id=user_id)


@router.get("/users/{user_id}/next-distribution", response_model=dict)
def next_distribution(user_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    require_investor_or_self(p, user_id)
    return {"user_id": user_id, "next_expected_date": views.get_next_expected_distribution_date(db, user_id=user_id)}


@router.get("/properties/{property_id}/statements", response_model=list[dict])
def property_statements(property_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return views.get_property_rental_statements(db, property_id=property_id)
