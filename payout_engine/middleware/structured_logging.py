# payout_engine/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings

log = logging.getLogger("payout_engine.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request. Fields travel as record extras so the JSON
    formatter renders them next to request_id; 5xx answers log at ERROR.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            level = logging.ERROR if status_code >= 500 else logging.INFO
            log.log(
                level,
                "http_request %s %s -> %d",
                request.method,
                request.url.path,
                status_code,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": status_code,
                    "latency_ms": elapsed_ms,
                    "actor_email": request.headers.get(settings.dev_header_user_email),
                },
            )
