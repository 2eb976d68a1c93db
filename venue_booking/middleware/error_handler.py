"""
Error handling middleware turning reservation errors into JSON envelopes.
"""

import logging
import traceback
from datetime import datetime, timezone
from uuid import uuid4

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy.exc import DBAPIError, TimeoutError as SQLTimeoutError
from pydantic import ValidationError as PydanticValidationError

from ..utils.exceptions import (
    VenueError,
    ErrorCode,
    ValidationError,
    NotFoundError,
    BusinessLogicError,
    BusyError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

STATUS_MAP = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SEAT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorCode.SLOT_HAS_BOOKINGS: status.HTTP_409_CONFLICT,
    ErrorCode.CONCURRENCY_CONFLICT: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.OPTIMISTIC_LOCK_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.BUSY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_envelope(exc: VenueError, error_id: str) -> dict:
    """Body shared by every error response."""
    return {
        "error": exc.to_dict(),
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    }


def error_response(exc: VenueError, error_id: str) -> JSONResponse:
    """JSON response for a reservation error, with Retry-After when it is retryable."""
    headers = {}
    if exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=STATUS_MAP.get(exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        content=error_envelope(exc, error_id),
        headers=headers
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware for error handling and response formatting."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next):
        """Process request and handle any exceptions."""
        error_id = str(uuid4())

        try:
            return await call_next(request)
        except Exception as exc:
            return self._handle_exception(request, exc, error_id)

    def _handle_exception(self, request: Request, exc: Exception, error_id: str) -> JSONResponse:
        """Handle different types of exceptions and return appropriate responses."""
        self._log_error(request, exc, error_id)

        if isinstance(exc, VenueError):
            return error_response(exc, error_id)
        elif isinstance(exc, PydanticValidationError):
            return self._handle_validation_error(exc, error_id)
        elif isinstance(exc, (DBAPIError, SQLTimeoutError, OSError)):
            return error_response(
                StoreUnavailableError(details={"error_type": type(exc).__name__}),
                error_id
            )
        else:
            return self._handle_unexpected_error(exc, error_id)

    def _handle_validation_error(self, exc: PydanticValidationError, error_id: str) -> JSONResponse:
        """Handle Pydantic validation errors."""
        field_errors = {}

        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            field_errors.setdefault(field_path, []).append(error["msg"])

        return error_response(
            ValidationError("Request validation failed", field_errors=field_errors),
            error_id
        )

    def _handle_unexpected_error(self, exc: Exception, error_id: str) -> JSONResponse:
        """Handle unexpected errors."""
        venue_error = VenueError(
            "An unexpected error occurred",
            error_code=ErrorCode.INTERNAL_ERROR,
            details={"error_type": type(exc).__name__} if self.debug else None
        )

        response_data = error_envelope(venue_error, error_id)

        # Include stack trace in debug mode
        if self.debug:
            response_data["debug"] = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response_data
        )

    def _log_error(self, request: Request, exc: Exception, error_id: str) -> None:
        """Log error with request context."""
        request_info = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        if isinstance(exc, (ValidationError, NotFoundError, BusinessLogicError)):
            logger.warning(
                f"Client error [{error_id}]: {exc.message}",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code.value,
                    "request": request_info,
                    "details": exc.details
                }
            )
        elif isinstance(exc, (BusyError, StoreUnavailableError)):
            logger.error(
                f"Service unavailable [{error_id}]: {exc.message}",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code.value,
                    "request": request_info,
                    "details": exc.details
                }
            )
        elif isinstance(exc, VenueError):
            logger.error(
                f"Reservation error [{error_id}]: {exc.message}",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code.value,
                    "request": request_info
                }
            )
        else:
            logger.error(
                f"Unexpected error [{error_id}]: {str(exc)}",
                extra={
                    "error_id": error_id,
                    "error_type": type(exc).__name__,
                    "request": request_info,
                    "traceback": traceback.format_exc()
                }
            )
