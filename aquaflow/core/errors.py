"""Domain exceptions and their HTTP rendering.

Services raise these; the handlers registered in ``aquaflow.main`` turn them
into the ``{"success": false, "message": ...}`` envelope. Because the request
session is rolled back whenever an exception escapes a route, raising one of
these mid-operation discards every write made so far in that request.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aquaflow.core.responses import error_body

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a JSON error response."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class BusinessRuleError(AppError):
    """Request is well-formed but violates a business rule."""


class PreconditionError(AppError):
    """Entity is in the wrong state for the requested transition."""

    def __init__(self, message: str, current_status: Optional[str] = None, **extra: Any):
        if current_status is not None:
            extra["currentStatus"] = current_status
        super().__init__(message, **extra)
        self.current_status = current_status


class InsufficientStockError(AppError):
    """Raised when there's not enough stock for a deduction."""

    def __init__(self, item_name: str, available: int, required: int, **extra: Any):
        super().__init__(
            f"Insufficient stock for {item_name}. Available: {available}, Required: {required}",
            itemName=item_name,
            available=available,
            required=required,
            **extra,
        )
        self.item_name = item_name
        self.available = available
        self.required = required


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.extra))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", {"errors": errors}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", {"error": str(exc)}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
