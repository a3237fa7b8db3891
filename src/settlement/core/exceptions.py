"""Centralized exception hierarchy and handlers for the application.

This module provides a unified exception system that maps all application errors
to appropriate HTTP status codes and response formats. Services and repositories
raise exceptions from this hierarchy; the registered handler turns them into
JSON responses.

Exception Hierarchy:
    AppException (base)
    ├── ValidationError (400)
    ├── NotFoundError (404)
    │   ├── RateNotFoundError
    │   └── AccountNotFoundError
    ├── ConflictError (409)
    │   └── StorageConflictError
    └── StorageError (503)

Business outcomes of an exchange (insufficient funds, failed transfers) are not
exceptions: they are returned as results with ``ok=False``.

Usage in Services:
    from settlement.core.exceptions import RateNotFoundError

    def resolve(rates, base, counter):
        try:
            return rates[base][counter]
        except KeyError:
            raise RateNotFoundError(f"No exchange rate for {base}->{counter}") from None
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Base exception class for all application errors.

    Provides standard structure for application exceptions that can be
    automatically converted to HTTP responses with appropriate status codes.

    Attributes:
        status_code: HTTP status code for this error type
        detail: User-facing error message
        error_code: Machine-readable error code (optional)
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"
    error_code: str | None = None

    def __init__(
        self,
        detail: str | None = None,
        *,
        error_code: str | None = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            detail: Custom error message (overrides class default)
            error_code: Machine-readable error identifier
        """
        self.detail = detail or self.__class__.detail
        self.error_code = error_code or self.__class__.error_code
        super().__init__(self.detail)


class ValidationError(AppException):
    """
    Raised when input validation fails.

    Used for non-positive rates, identical currency pairs or negative balances.
    Maps to HTTP 400 Bad Request.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Validation error"
    error_code = "VALIDATION_ERROR"


class NotFoundError(AppException):
    """
    Raised when a requested resource is not found.

    Maps to HTTP 404 Not Found.
    """

    status_code = status.HTTP_404_NOT_FOUND
    detail = "Resource not found"
    error_code = "NOT_FOUND"


class RateNotFoundError(NotFoundError):
    """Raised when no exchange rate is defined for an ordered currency pair."""

    detail = "Exchange rate not found"
    error_code = "RATE_NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Raised when an internal account cannot be resolved by id or currency."""

    detail = "Account not found"
    error_code = "ACCOUNT_NOT_FOUND"


class ConflictError(AppException):
    """
    Raised when there's a conflict in the operation.

    Used for concurrent modifications or state conflicts.
    Maps to HTTP 409 Conflict.
    """

    status_code = status.HTTP_409_CONFLICT
    detail = "Resource conflict"
    error_code = "CONFLICT"


class StorageConflictError(ConflictError):
    """Raised when a conditional write keeps losing to concurrent writers."""

    detail = "Ledger record was modified concurrently"
    error_code = "STORAGE_CONFLICT"


class StorageError(AppException):
    """
    Raised when the ledger storage backend fails.

    Wraps driver errors (connection loss, timeouts) so callers see one type.
    Maps to HTTP 503 Service Unavailable.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Ledger storage unavailable"
    error_code = "STORAGE_ERROR"


async def app_exception_handler(
    request: Request,
    exc: AppException,
) -> JSONResponse:
    """
    Handle application exceptions and convert to HTTP responses.

    Args:
        request: FastAPI request object
        exc: The exception instance

    Returns:
        JSONResponse with error details and HTTP status code

    Response Format:
        {
            "detail": "User-facing error message",
            "error_code": "MACHINE_READABLE_CODE"  # optional
        }
    """
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__}: {exc.detail}",
            exc_info=True,
            extra={
                "status_code": exc.status_code,
                "error_code": exc.error_code,
                "request_path": request.url.path,
            },
        )
    else:
        logger.warning(
            f"{exc.__class__.__name__}: {exc.detail}",
            extra={
                "status_code": exc.status_code,
                "error_code": exc.error_code,
                "request_path": request.url.path,
            },
        )

    response_body: dict[str, Any] = {"detail": exc.detail}
    if exc.error_code:
        response_body["error_code"] = exc.error_code

    return JSONResponse(
        status_code=exc.status_code,
        content=response_body,
    )
