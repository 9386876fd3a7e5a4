# payout_engine/middleware/request_id.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LEN = 128

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Id of the request being served, or None outside a request (CLI, tests)."""
    return request_id_ctx.get()


def _incoming_id(request: Request) -> Optional[str]:
    # header lookup is case-insensitive in starlette
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if not rid or len(rid) > MAX_REQUEST_ID_LEN:
        return None
    return rid


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Binds a request id for the lifetime of the request so log lines and
    engine error bodies can carry it. A caller-supplied id is reused,
    otherwise a uuid4 is minted. Always echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = _incoming_id(request) or uuid.uuid4().hex
        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        try:
            resp = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        resp.headers[REQUEST_ID_HEADER] = rid
        return resp
