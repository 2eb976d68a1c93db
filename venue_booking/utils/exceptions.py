"""
Custom exceptions for the Venue Booking reservation core.
"""

from typing import Any, Dict, Optional, List
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the platform."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Business logic errors
    SEAT_CONFLICT = "SEAT_CONFLICT"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    SLOT_HAS_BOOKINGS = "SLOT_HAS_BOOKINGS"

    # Concurrency errors
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    OPTIMISTIC_LOCK_FAILURE = "OPTIMISTIC_LOCK_FAILURE"
    BUSY = "BUSY"

    # Collaborator errors
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class VenueError(Exception):
    """Base exception class for the reservation core."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        retry_after: Optional[int] = None
    ):
        """Initialize the exception with comprehensive error information."""
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.suggestions = suggestions or []
        self.retry_after = retry_after
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }

        if self.details:
            result["details"] = self.details

        if self.suggestions:
            result["suggestions"] = self.suggestions

        if self.retry_after:
            result["retry_after"] = self.retry_after

        return result


class ValidationError(VenueError):
    """Exception raised for invalid reservation requests."""

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, List[str]]] = None,
        details: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_ERROR,
            details={"field_errors": field_errors} if field_errors else details,
            **kwargs
        )
        self.field_errors = field_errors or {}


class NotFoundError(VenueError):
    """Base exception for resource not found errors."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id} if resource_type else None,
            **kwargs
        )


class SlotNotFoundError(NotFoundError):
    """Exception raised when a slot is not found."""

    def __init__(self, slot_id: str, **kwargs):
        super().__init__(
            f"Slot {slot_id} not found",
            resource_type="slot",
            resource_id=str(slot_id),
            suggestions=["Check the slot ID", "Browse available showtimes"],
            **kwargs
        )


class BookingNotFoundError(NotFoundError):
    """Exception raised when a booking is not found."""

    def __init__(self, booking_id: str, **kwargs):
        super().__init__(
            f"Booking {booking_id} not found",
            resource_type="booking",
            resource_id=str(booking_id),
            suggestions=["Check the booking ID", "View your bookings"],
            **kwargs
        )


class BusinessLogicError(VenueError):
    """Base exception for business logic violations."""
    pass


class SeatConflictError(BusinessLogicError):
    """Exception raised when a requested seat is already held."""

    def __init__(self, slot_id: str, labels: List[str], **kwargs):
        super().__init__(
            f"Seats not available on slot {slot_id}: {', '.join(labels)}",
            error_code=ErrorCode.SEAT_CONFLICT,
            details={"slot_id": str(slot_id), "seats": labels},
            suggestions=["Choose different seats", "Refresh the seat map"],
            **kwargs
        )
        self.labels = labels


class CapacityExceededError(BusinessLogicError):
    """Exception raised when capacity is short and the waitlist is disabled."""

    def __init__(self, requested: int, available: int, slot_id: Optional[str] = None, **kwargs):
        super().__init__(
            f"Insufficient capacity: requested {requested}, available {available}",
            error_code=ErrorCode.CAPACITY_EXCEEDED,
            details={"requested": requested, "available": available, "slot_id": str(slot_id)},
            suggestions=["Try booking fewer tickets", "Pick another showtime"],
            **kwargs
        )


class SlotHasBookingsError(BusinessLogicError):
    """Exception raised when trying to delete a slot that bookings reference."""

    def __init__(self, slot_id: str, booking_count: int, **kwargs):
        super().__init__(
            f"Cannot delete slot {slot_id} referenced by {booking_count} bookings",
            error_code=ErrorCode.SLOT_HAS_BOOKINGS,
            details={"slot_id": str(slot_id), "booking_count": booking_count},
            **kwargs
        )


class ConcurrencyError(VenueError):
    """Exception raised for concurrency-related issues."""

    def __init__(self, message: str, retry_after: int = 1, **kwargs):
        kwargs.setdefault("error_code", ErrorCode.CONCURRENCY_CONFLICT)
        super().__init__(
            message,
            retry_after=retry_after,
            suggestions=["Please try again"],
            **kwargs
        )


class OptimisticLockError(ConcurrencyError):
    """Exception raised when a compare-and-swap on a versioned row misses."""

    def __init__(self, resource_type: str, resource_id: str, **kwargs):
        super().__init__(
            f"{resource_type} {resource_id} was modified by another transaction",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
            error_code=ErrorCode.OPTIMISTIC_LOCK_FAILURE,
            **kwargs
        )


class BusyError(VenueError):
    """Exception raised when contention outlasts the internal retry budget."""

    def __init__(self, operation: str, attempts: int, retry_after: int = 1, **kwargs):
        super().__init__(
            f"{operation} could not complete after {attempts} attempts due to contention",
            error_code=ErrorCode.BUSY,
            details={"operation": operation, "attempts": attempts},
            suggestions=["Wait a moment and retry"],
            retry_after=retry_after,
            **kwargs
        )


class StoreUnavailableError(VenueError):
    """Exception raised when the persistence store cannot be reached."""

    def __init__(self, message: str = "Persistence store unavailable", retry_after: int = 30, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.STORE_UNAVAILABLE,
            suggestions=["Try again later"],
            retry_after=retry_after,
            **kwargs
        )
