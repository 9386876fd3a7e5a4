# payout_engine/domain/errors.py
from __future__ import annotations

from typing import Any, Optional


class DistributionEngineError(Exception):
    """
    Base for every error the engine raises on purpose.

    status_code is what the HTTP adapter answers with; services never import
    FastAPI so the same errors surface unchanged to CLI and tests.
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, detail: str, *, context: Optional[dict[str, Any]] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = dict(context or {})

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"detail": self.detail, "error": type(self).__name__}
        if self.context:
            out["context"] = self.context
        if self.retryable:
            out["retryable"] = True
        return out


class ValidationError(DistributionEngineError):
    status_code = 422


class NotFoundError(DistributionEngineError):
    status_code = 404


class Forbidden(DistributionEngineError):
    status_code = 403


class StateConflictError(DistributionEngineError):
    status_code = 409


class EditConflictError(StateConflictError):
    """Statement financials edited while its distribution is past DRAFT."""


class IntegrityError(DistributionEngineError):
    status_code = 500


class DependencyError(DistributionEngineError):
    status_code = 503
    retryable = True
