"""
Service error taxonomy.

Every failure a caller can see maps to one stable machine-readable ``kind`` and an
HTTP status. Routes let these propagate; the handlers registered in ``main`` render them.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    kind = "internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(ServiceError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidStateError(ServiceError):
    kind = "invalid_state"
    status_code = 409
    default_message = "Operation not valid in the current state"


class InvalidArgumentError(ServiceError):
    kind = "invalid_argument"
    status_code = 400
    default_message = "Invalid argument"


class InternalError(ServiceError):
    pass


def error_body(kind: str, message: str) -> dict:
    return {"success": False, "error": kind, "message": message}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, exc.message),
        headers=headers,
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation failures as invalid_argument."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=InvalidArgumentError.status_code,
        content=error_body(InvalidArgumentError.kind, "; ".join(parts) or "Invalid request"),
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database failures surface as internal; the session dependency has rolled back."""
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body(InternalError.kind, InternalError.default_message))
