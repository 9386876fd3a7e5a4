# payout_engine/routers/distributions.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin_principal
from ..db import get_db
from ..models import Distribution
from ..schemas import (
    ActionNotes,
    DeleteRequest,
    DistributionCreate,
    DistributionOut,
    OutstandingSharesOut,
    UnsoldFixOut,
    ValidationReportOut,
)
from ..services import distributions as svc
from ..services.recalculation import fix_unsold_inventory_payouts, recompute_distribution
from ..services.shares import resolve_outstanding_shares
from ..services.validation import validate_distribution

router = APIRouter(prefix="/distributions", tags=["distributions"])


def _out(dist: Distribution) -> DistributionOut:
    out = DistributionOut.model_validate(dist)
    return out.model_copy(update={"display_status": svc.distribution_label(dist)})


@router.post("", response_model=DistributionOut)
def create_draft(payload: DistributionCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _out(svc.create_draft_distribution(db, actor_user_id=p.user_id, statement_id=payload.statement_id))


@router.get("", response_model=list[DistributionOut])
def list_distributions(
    property_id: int | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    p=Depends(require_admin_principal),
):
    rows = svc.list_distributions(db, property_id=property_id, status=status, limit=limit)
    return [_out(d) for d in rows]


@router.get("/{distribution_id}", response_model=DistributionOut)
def get_distribution(distribution_id: int, db: Session = Depends(get_db), p=Depends(require_admin_principal)):
    return _out(svc.get_distribution(db, distribution_id=distribution_id))


@router.get("/{distribution_id}/validate", response_model=ValidationReportOut)
def validate(distribution_id: int, db: Session = Depends(get_db), p=Depends(require_admin_principal)):
    return validate_distribution(db, distribution_id=distribution_id).as_dict()


@router.post("/{distribution_id}/submit", response_model=DistributionOut)
def submit(distribution_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _out(svc.submit_for_approval(db, actor_user_id=p.user_id, distribution_id=distribution_id))


@router.post("/{distribution_id}/approve", response_model=DistributionOut)
def approve(
    distribution_id: int,
    payload: ActionNotes | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    notes = payload.notes if payload else None
    return _out(svc.approve_distribution(db, actor_user_id=p.user_id, distribution_id=distribution_id, notes=notes))


@router.post("/{distribution_id}/reject", response_model=DistributionOut)
def reject(
    distribution_id: int,
    payload: ActionNotes | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    notes = payload.notes if payload else None
    return _out(svc.reject_distribution(db, actor_user_id=p.user_id, distribution_id=distribution_id, notes=notes))


@router.post("/{distribution_id}/declare", response_model=DistributionOut)
def declare(distribution_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _out(svc.declare_distribution(db, actor_user_id=p.user_id, distribution_id=distribution_id))


@router.post("/{distribution_id}/recalculate", response_model=DistributionOut)
def recalculate(distribution_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return _out(recompute_distribution(db, actor_user_id=p.user_id, distribution_id=distribution_id))


@router.post("/{distribution_id}/fix-unsold-shares", response_model=list[UnsoldFixOut])
def fix_unsold_shares(distribution_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    fixes = fix_unsold_inventory_payouts(db, actor_user_id=p.user_id, distribution_id=distribution_id)
    return [f.as_dict() for f in fixes]


@router.post("/fix-unsold-shares", response_model=list[UnsoldFixOut])
def fix_all_unsold_shares(db: Session = Depends(get_db), p=Depends(get_principal)):
    return [f.as_dict() for f in fix_unsold_inventory_payouts(db, actor_user_id=p.user_id)]


@router.delete("/{distribution_id}")
def delete_distribution(
    distribution_id: int,
    payload: DeleteRequest | None = None,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    reason = payload.reason if payload else None
    return svc.delete_distribution(db, actor_user_id=p.user_id, distribution_id=distribution_id, reason=reason)


@router.get("/properties/{property_id}/outstanding-shares", response_model=OutstandingSharesOut)
def outstanding_shares(property_id: int, db: Session = Depends(get_db), p=Depends(require_admin_principal)):
    return resolve_outstanding_shares(db, property_id=property_id).as_dict()
