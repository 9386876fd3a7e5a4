# payout_engine/routers/statements.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_principal, require_admin_principal
from ..db import get_db
from ..schemas import StatementCreate, StatementOut, StatementUpdate
from ..services import statements as svc

router = APIRouter(prefix="/statements", tags=["statements"])


@router.post("", response_model=StatementOut)
def create_statement(payload: StatementCreate, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.create_statement(db, actor_user_id=p.user_id, payload=payload)


@router.get("", response_model=list[StatementOut])
def list_statements(
    property_id: int | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    p=Depends(require_admin_principal),
):
    return svc.list_statements(db, property_id=property_id, limit=limit)


@router.get("/{statement_id}", response_model=StatementOut)
def get_statement(statement_id: int, db: Session = Depends(get_db), p=Depends(require_admin_principal)):
    return svc.get_statement(db, statement_id=statement_id)


@router.patch("/{statement_id}", response_model=StatementOut)
def update_statement(
    statement_id: int,
    payload: StatementUpdate,
    db: Session = Depends(get_db),
    p=Depends(get_principal),
):
    return svc.update_statement(db, actor_user_id=p.user_id, statement_id=statement_id, partial=payload)


@router.delete("/{statement_id}")
def delete_statement(statement_id: int, db: Session = Depends(get_db), p=Depends(get_principal)):
    return svc.delete_statement(db, actor_user_id=p.user_id, statement_id=statement_id)


@router.get("/{statement_id}/expenses", response_model=list[dict])
def download_expenses(statement_id: int, db: Session = Depends(get_db), p=Depends(require_admin_principal)):
    return svc.export_operating_cost_items(db, statement_id=statement_id)
