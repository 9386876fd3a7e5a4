# payout_engine/routers/payouts.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_principal
from ..db import get_db
from ..schemas import MarkPaidRequest, PayoutBatchResultOut, PayoutOut, PayoutUpdateBatch, PayoutUpdateRow
from ..services import payouts as svc

router = APIRouter(prefix="/payouts", tags=["payouts"])


@router.post("/import", response_model=PayoutBatchResultOut)
def import_rows(payload: PayoutUpdateBatch, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.apply_payout_updates(
        db,
        actor_user_id=p.user_id,
        rows=payload.rows,
        distribution_id=payload.distribution_id,
    )


@router.post("/update", response_model=PayoutOut)
def update_row(payload: PayoutUpdateRow, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.apply_payout_update(db, actor_user_id=p.user_id, row=payload)


@router.post("/{payout_id}/paid", response_model=PayoutOut)
def mark_paid(payout_id: int, payload: MarkPaidRequest, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.mark_payout_paid(
        db,
        actor_user_id=p.user_id,
        payout_id=payout_id,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
        paid_at=payload.paid_at,
        notes=payload.notes,
    )
