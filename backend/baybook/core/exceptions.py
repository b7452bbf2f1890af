# backend/baybook/core/exceptions.py
"""
Domain-specific exceptions for the bay booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
The families map to what a caller can do about the failure:

- ValidationException: the request is invalid, do not retry
- ConflictException: the slot or capacity is gone, pick another slot
- NotFoundException: unknown id, or an id that does not belong to the caller
- BusinessRuleException: a policy forbids the action
- ServiceException: a dependency failed, contact support
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation or an external dependency fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidLocationException(NotFoundException):
    def __init__(self, location_id: str):
        super().__init__(
            message="Invalid location ID",
            code="INVALID_LOCATION",
            details={"location_id": location_id},
        )


class BookingNotFoundException(NotFoundException):
    """Unknown booking, or a booking owned by someone else."""

    def __init__(self, booking_id: str, message: Optional[str] = None):
        super().__init__(
            message=message or "Booking not found or access denied",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class SlotUnavailableException(ConflictException):
    """Raised when the store rejects a booking because the bay is taken."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available.",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class CapacityHoldConflictException(ConflictException):
    """Raised when a league capacity hold blocks a public booking."""

    def __init__(self, hold_id: str, league_id: str, league_name: Optional[str] = None):
        label = league_name or "a league"
        super().__init__(
            message=f"This time is reserved for {label}. Please choose another time.",
            code="CAPACITY_HOLD_CONFLICT",
            details={"hold_id": hold_id, "league_id": league_id},
        )


class AlreadyCancelledException(BusinessRuleException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class WrongStatusForOperationException(BusinessRuleException):
    def __init__(self, booking_id: str, current_status: str, message: str):
        super().__init__(
            message=message,
            code="WRONG_STATUS_FOR_OPERATION",
            details={"booking_id": booking_id, "status": current_status},
        )


class ReservationExpiredException(BusinessRuleException):
    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking reservation has expired.",
            code="RESERVATION_EXPIRED",
            details={"booking_id": booking_id},
        )


class CancellationWindowViolationException(BusinessRuleException):
    """Raised when a customer cancels too close to the start time."""

    def __init__(self, required_hours: int, hours_remaining: float):
        rounded = round(hours_remaining, 1)
        super().__init__(
            message=(
                f"Bookings cannot be cancelled within {required_hours} hours of the "
                f"start time. Hours remaining: {rounded}"
            ),
            code="CANCELLATION_WINDOW_VIOLATION",
            details={"required_hours": required_hours, "hours_remaining": rounded},
        )


class NoPricingRuleException(BusinessRuleException):
    def __init__(self, location_id: str, message: Optional[str] = None, **details: Any):
        super().__init__(
            message=message or "No pricing rules found for this location",
            code="NO_PRICING_RULE",
            details={"location_id": location_id, **details},
        )


class LeagueNotFoundException(NotFoundException):
    def __init__(self, league_id: str):
        super().__init__(
            message="League not found for capacity adjustment.",
            code="LEAGUE_NOT_FOUND",
            details={"league_id": league_id},
        )


class AttendanceLockedException(BusinessRuleException):
    def __init__(self, week_id: str):
        super().__init__(
            message="Attendance has been locked for this week.",
            code="ATTENDANCE_LOCKED",
            details={"league_week_id": week_id},
        )


class RefundFailedException(ServiceException):
    """
    Raised by the payment gateway adapter when a refund cannot be created.

    Once a cancellation has committed this is caught, logged and reported
    for manual reconciliation instead of failing the request.
    """

    def __init__(self, payment_intent_id: str, reason: str):
        super().__init__(
            message=f"Failed to process refund. Please contact support. Details: {reason}",
            code="REFUND_FAILED",
            details={"payment_intent_id": payment_intent_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
