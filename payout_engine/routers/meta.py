# payout_engine/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter

from ..config import settings

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=dict)
def health():
    return {"ok": True}


@router.get("/meta", response_model=dict)
def meta():
    return {
        "engine_version": settings.engine_version,
        "money_places": settings.money_places,
        "ledger_currency": settings.ledger_currency,
        "rounding_tolerance_per_holder": settings.rounding_tolerance_per_holder,
    }
