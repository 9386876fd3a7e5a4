# payout_engine/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .domain.errors import DistributionEngineError
from .logging_config import configure_logging
from .middleware.request_id import RequestIdMiddleware, get_request_id
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.distributions import router as distributions_router
from .routers.income import router as income_router
from .routers.investments import router as investments_router
from .routers.meta import router as meta_router
from .routers.payouts import router as payouts_router
from .routers.statements import router as statements_router
from .services.recalculation import register_event_handlers

API_PREFIX = "/api"

log = logging.getLogger("payout_engine.main")


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _engine_error_handler(request: Request, exc: DistributionEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("engine_error %s", exc.detail, extra={"error": type(exc).__name__})
    body = exc.as_dict()
    rid = get_request_id()
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=exc.status_code, content=body)


def create_app() -> FastAPI:
    configure_logging()
    register_event_handlers()

    app = FastAPI(title="Payout Engine", version=settings.engine_version)

    app.add_middleware(StructuredLoggingMiddleware)
    # added last so it runs first and the logging middleware sees the id
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(DistributionEngineError, _engine_error_handler)

    app.include_router(meta_router, prefix=API_PREFIX)
    app.include_router(statements_router, prefix=API_PREFIX)
    app.include_router(distributions_router, prefix=API_PREFIX)
    app.include_router(payouts_router, prefix=API_PREFIX)
    app.include_router(investments_router, prefix=API_PREFIX)
    app.include_router(income_router, prefix=API_PREFIX)
    return app


app = create_app()
