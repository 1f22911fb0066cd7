"""Custom error handlers and exceptions for the application."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from typing import Optional, Union

from .logging_config import get_logger

logger = get_logger("error_handlers")


class AppException(Exception):
    """Base exception for application-specific errors."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppException):
    """Raised when a requested resource is absent or soft-deleted."""

    def __init__(self, resource: str, identifier: Union[int, str]):
        super().__init__(
            message=f"{resource} with identifier '{identifier}' not found",
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ValidationFailureError(AppException):
    """Raised when input is malformed or out of range for a business rule."""

    def __init__(self, message: str, errors: Optional[list] = None, **details):
        super().__init__(
            message=message,
            status_code=422,
            details={"validation_errors": errors or [], **details}
        )


class InvalidStatusTransitionError(ValidationFailureError):
    """Raised when a product status change is not in the transition table."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change status from '{current}' to '{requested}'",
            current_status=current,
            requested_status=requested,
        )


class ConcurrencyConflictError(AppException):
    """Raised when an optimistic concurrency check detects a lost update."""

    def __init__(self, resource: str, identifier: Union[int, str], message: Optional[str] = None):
        super().__init__(
            message=message or f"{resource} '{identifier}' was modified by another request",
            status_code=409,
            details={"resource": resource, "identifier": str(identifier)}
        )


class TransientStoreError(AppException):
    """Raised when the database stays unreachable after the bounded retries."""

    def __init__(self, message: str, attempts: int):
        super().__init__(
            message=f"Database temporarily unavailable: {message}",
            status_code=503,
            details={"attempts": attempts}
        )


class ConfigurationError(AppException):
    """Raised on fatal misconfiguration (e.g. missing connection string)."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=500)


def error_body(status_code: int, message: str, request: Request, details: Optional[dict] = None) -> dict:
    """Shape shared by every error response: status, message, details, path."""
    return {
        "status": status_code,
        "message": message,
        "details": details or {},
        "path": request.url.path,
    }


def error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, message, request, details),
        headers=headers,
    )


def request_context(request: Request, **extra) -> dict:
    return {"path": request.url.path, "method": request.method, **extra}


async def app_exception_handler(request: Request, exc: AppException):
    """Domain errors: client mistakes log as warnings, server-side ones as errors."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra=request_context(request, status_code=exc.status_code, details=exc.details)
    )
    return error_response(request, exc.status_code, exc.message, exc.details)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request body, path or query."""
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"validation_errors": errors}
    )
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation failed",
        {"validation_errors": errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Framework errors (unknown route, bad token) in the common shape."""
    logger.warning(f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}")
    message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
    return error_response(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def stale_data_exception_handler(request: Request, exc: StaleDataError):
    """A versioned flush lost a race outside the services' own check."""
    logger.warning(f"Concurrent modification on {request.method} {request.url.path}: {exc}")
    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        "The resource was modified by another request",
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Constraint violations are conflicts; anything else is a server error."""
    if isinstance(exc, IntegrityError):
        status_code, message = status.HTTP_409_CONFLICT, "Data integrity constraint violated"
    else:
        status_code, message = status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error occurred"

    logger.error(
        f"Database error: {exc}",
        extra=request_context(request, exception_type=type(exc).__name__),
        exc_info=True
    )
    return error_response(request, status_code, message)


async def generic_exception_handler(request: Request, exc: Exception):
    logger.critical(
        f"Unhandled exception: {exc}",
        extra=request_context(request, exception_type=type(exc).__name__),
        exc_info=True
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please contact support if the issue persists.",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Most specific first; Starlette picks the handler by exception MRO."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StaleDataError, stale_data_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
