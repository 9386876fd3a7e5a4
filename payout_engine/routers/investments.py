# payout_engine/routers/investments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import DeleteRequest, InvestmentCreate, InvestmentOut, TransactionOut
from ..services import investments as svc

router = APIRouter(tags=["investments"])


@router.post("/investments", response_model=InvestmentOut)
def purchase(payload: InvestmentCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.purchase_shares(
        db,
        actor_user_id=p.user_id,
        property_id=payload.property_id,
        shares=payload.shares,
        user_id=payload.user_id,
    )


@router.post("/investments/{investment_id}/cancel", response_model=InvestmentOut)
def cancel(
    investment_id: int,
    payload: DeleteRequest | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    reason = payload.reason if payload else None
    return svc.cancel_investment(db, actor_user_id=p.user_id, investment_id=investment_id, reason=reason)


@router.delete("/investments/{investment_id}")
def delete_investment(
    investment_id: int,
    payload: DeleteRequest | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    reason = payload.reason if payload else None
    return svc.delete_investment(db, actor_user_id=p.user_id, investment_id=investment_id, reason=reason)


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    property_id: int | None = Query(default=None),
    txn_type: str | None = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    user_id = None if p.is_admin else p.user_id
    return svc.list_transactions(db, user_id=user_id, property_id=property_id, txn_type=txn_type, limit=limit)


@router.delete("/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    payload: DeleteRequest,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    return svc.delete_transaction(db, actor_user_id=p.user_id, transaction_id=transaction_id, reason=payload.reason or "")
