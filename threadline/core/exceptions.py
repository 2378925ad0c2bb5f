"""
Domain errors and global exception handlers — prevents stack-trace leakage to clients.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class AppError(Exception):
    """Base class for errors that are part of the API contract."""

    status_code = 400
    code = "app_error"
    detail = "Application error"
    headers: dict[str, str] | None = None

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidCredentials(AppError):
    status_code = 401
    code = "invalid_credentials"
    detail = "Invalid username or password"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    detail = "Not authenticated"
    headers = {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    detail = "You are not allowed to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    detail = "Resource not found"


class UsernameTaken(AppError):
    status_code = 409
    code = "username_taken"
    detail = "Username already exists"


class AlreadyDeleted(AppError):
    status_code = 409
    code = "already_deleted"
    detail = "This item has been deleted"


class NotDeleted(AppError):
    status_code = 409
    code = "not_deleted"
    detail = "This item is not deleted"


class ValidationError(AppError):
    """Field-level violation detected outside request-schema parsing."""

    status_code = 422
    code = "validation_error"
    detail = "Validation error"

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.errors = [{"field": field, "message": message}]


# ── Handlers ────────────────────────────────────────────────────────
def _error_body(detail: Any, code: str, **extra: Any) -> dict[str, Any]:
    return {"detail": detail, "code": code, "success": False, **extra}


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    extra = {"errors": exc.errors} if isinstance(exc, ValidationError) else {}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, exc.code, **extra),
        headers=exc.headers,
    )


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = []
    for err in exc.errors():
        # Drop the leading "body"/"query" segment so the field name is what the caller sent
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "")})
    return JSONResponse(
        status_code=422,
        content=_error_body("Validation error", "validation_error", errors=errors),
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.detail, "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content=_error_body("Database constraint violation", "conflict"),
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal database error", "internal_error"),
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "internal_error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
