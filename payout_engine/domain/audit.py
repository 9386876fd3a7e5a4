# payout_engine/domain/audit.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.orm import Session

from ..models import AuditEvent

log = logging.getLogger("payout_engine.audit")


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    reason: Optional[str] = None,
) -> Optional[AuditEvent]:
    """
    Best-effort audit row, written in a SAVEPOINT of the caller's transaction.

    - Never commits; it lands with the caller's unit of work.
    - A failed write is rolled back to the savepoint and logged with the
      audit_write_failed sentinel. The primary mutation proceeds.
    """
    row = AuditEvent(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        reason=reason,
        created_at=datetime.utcnow(),
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except sa_exc.SQLAlchemyError as e:
        log.error(
            "audit_write_failed",
            extra={"action": action, "actor_user_id": actor_user_id, "error": str(e)},
        )
        return None
    return row
