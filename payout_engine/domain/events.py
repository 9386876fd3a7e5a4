# payout_engine/domain/events.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

log = logging.getLogger("payout_engine.events")


@dataclass(frozen=True)
class StatementRevised:
    """Published inside the statement's unit of work after its figures change."""

    statement_id: int
    property_id: int
    net_distributable: Decimal
    actor_user_id: Optional[int] = None


Handler = Callable[[Session, object], None]

_handlers: dict[type, list[Handler]] = defaultdict(list)


def subscribe(event_type: type, handler: Handler) -> None:
    if handler not in _handlers[event_type]:
        _handlers[event_type].append(handler)


def publish(db: Session, event: object) -> int:
    """
    Synchronous dispatch on the caller's session.

    Handlers run in the publisher's transaction, so a handler error aborts the
    whole unit of work. Returns the number of handlers invoked.
    """
    handlers = list(_handlers.get(type(event), ()))
    for h in handlers:
        log.debug("dispatch %s -> %s", type(event).__name__, getattr(h, "__name__", repr(h)))
        h(db, event)
    return len(handlers)
