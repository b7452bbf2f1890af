# backend/baybook/core/enums.py
"""Shared enumerations for bookings, payments, holds and leagues."""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    RESERVED = "reserved"  # Held for a short time while the customer pays
    CONFIRMED = "confirmed"  # Paid (or created by staff)
    CANCELLED = "cancelled"
    EXPIRED = "expired"  # Reservation timed out unpaid
    ABANDONED = "abandoned"  # Reservation dropped by the customer before paying

    @classmethod
    def active(cls) -> tuple["BookingStatus", ...]:
        """Statuses that occupy a bay."""
        return (cls.RESERVED, cls.CONFIRMED)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class CancellationInitiator(str, Enum):
    CUSTOMER = "customer"
    EMPLOYEE = "employee"


class HoldType(str, Enum):
    ALL_BAYS = "all_bays"
    NUM_BAYS = "num_bays"
    PCT_CAPACITY = "pct_capacity"


class HoldStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    RELEASED = "released"


class AttendanceStatus(str, Enum):
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    NO_RESPONSE = "no_response"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class BookingEvent(str, Enum):
    """Side-effect events that must be dispatched at most once per booking."""

    CONFIRMED = "booking_confirmed"
