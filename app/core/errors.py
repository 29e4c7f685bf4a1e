#app/core/errors.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ContractError(Exception):
    """Base of the lifecycle error taxonomy. `status_code` is the HTTP mapping."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail or self.__class__.__name__


class NotFoundError(ContractError):
    """Missing contract or blob."""

    status_code = 404
    kind = "not_found"


class Forbidden(ContractError):
    """Valid request, wrong lifecycle state (e.g. access before signing). Not retried."""

    status_code = 403
    kind = "forbidden"


class InvalidDocumentError(ContractError):
    """Malformed PDF or signature image. Not retried."""

    status_code = 400
    kind = "invalid_document"


class UpstreamError(ContractError):
    """Every storage / notification backend exhausted. Safe to retry with backoff."""

    status_code = 502
    kind = "upstream_unavailable"


class ConflictError(ContractError):
    """Contract already signed or being signed concurrently. Not retried."""

    status_code = 409
    kind = "conflict"


async def _contract_error_handler(request: Request, exc: ContractError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("request failed upstream", extra={"path": request.url.path, "detail": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.detail},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContractError, _contract_error_handler)
