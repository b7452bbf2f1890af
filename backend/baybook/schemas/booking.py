# backend/baybook/schemas/booking.py
"""
Result schemas returned by the booking lifecycle operations.

Amounts are integer cents. ``refund_failed`` on a cancellation means the
booking is cancelled but the refund must be reconciled by support.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from ..core.enums import BookingStatus
from .base import StandardizedModel
from .pricing import PriceQuote


class ReservationResult(StandardizedModel):
    booking_id: str
    status: BookingStatus = BookingStatus.RESERVED
    expires_at: datetime
    total_amount_cents: int = Field(..., ge=0)
    start_time: datetime
    end_time: datetime
    quote: Optional[PriceQuote] = None


class ConfirmationResult(StandardizedModel):
    booking_id: str
    status: BookingStatus
    # False when the confirmation was a re-delivery
    newly_confirmed: bool


class CancellationResult(StandardizedModel):
    success: bool = True
    booking_id: str
    location_id: str
    bay_id: str
    status: BookingStatus
    refund_id: Optional[str] = None
    refund_amount_cents: int = 0
    refund_failed: bool = False
    message: str


class BookingSummary(StandardizedModel):
    """Read model for schedule views."""

    id: str
    location_id: str
    bay_id: str
    user_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    expires_at: Optional[datetime] = None
    total_amount_cents: int
    party_size: int


class DaySchedule(StandardizedModel):
    location_id: str
    schedule_date: date
    bookings: List[BookingSummary] = Field(default_factory=list)
