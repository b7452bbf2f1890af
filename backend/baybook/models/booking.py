# backend/baybook/models/booking.py
"""
Booking model for the bay booking engine.

A booking is one bay for one time window on one local calendar day. Start and
end are stored as UTC instants; the local date and times are derived from
the location's timezone when needed.

Lifecycle:
    reserved -> confirmed   payment succeeded
    reserved -> expired     unpaid past expires_at
    reserved -> abandoned   customer dropped the reservation
    reserved -> cancelled   staff cancelled
    confirmed -> cancelled  customer (24h rule) or staff
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus
from ..database import Base
from .types import UTCDateTime


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    location_id = Column(String(26), ForeignKey("locations.id"), nullable=False)
    bay_id = Column(String(26), ForeignKey("bays.id"), nullable=False)
    # Null for staff-created bookings until a customer is assigned
    user_id = Column(String(26), nullable=True, index=True)

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    party_size = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default=BookingStatus.RESERVED.value)
    expires_at = Column(UTCDateTime, nullable=True)
    total_amount_cents = Column(Integer, nullable=False, default=0)

    notes = Column(Text, nullable=True)
    created_by_employee_id = Column(String(26), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(UTCDateTime, nullable=True, onupdate=func.now())

    location = relationship("Location")
    bay = relationship("Bay")
    payments = relationship("Payment", back_populates="booking", order_by="Payment.created_at")
    cancellations = relationship("BookingCancellation", back_populates="booking")

    __table_args__ = (
        CheckConstraint(
            "status IN ('reserved', 'confirmed', 'cancelled', 'expired', 'abandoned')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_time > start_time", name="check_time_order"),
        CheckConstraint("party_size > 0", name="check_party_size_positive"),
        CheckConstraint("total_amount_cents >= 0", name="check_amount_non_negative"),
        Index("ix_bookings_bay_window", "bay_id", "start_time", "end_time"),
        Index("ix_bookings_location_status", "location_id", "status"),
        Index("ix_bookings_reserved_expiry", "status", "expires_at"),
    )

    def is_reservation_expired(self, now: datetime) -> bool:
        """True for an unpaid reservation whose hold window has passed."""
        return (
            self.status == BookingStatus.RESERVED.value
            and self.expires_at is not None
            and self.expires_at < now
        )

    def __repr__(self) -> str:
        return f"<Booking {self.id} bay={self.bay_id} {self.status}>"


class BookingCancellation(Base):
    """Audit row written for every cancellation or abandoned reservation."""

    __tablename__ = "booking_cancellations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    cancelled_by = Column(String(26), nullable=True)
    initiator = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    cancellation_fee_cents = Column(Integer, nullable=False, default=0)
    refund_amount_cents = Column(Integer, nullable=False, default=0)
    refund_id = Column(String(255), nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=False)

    booking = relationship("Booking", back_populates="cancellations")


class BookingEventDelivery(Base):
    """
    Ledger of side effects already dispatched for a booking.

    The unique (booking_id, event_type) pair makes a re-delivered payment
    confirmation a no-op for notifications.
    """

    __tablename__ = "booking_event_deliveries"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False)
    event_type = Column(String(64), nullable=False)
    delivered_at = Column(UTCDateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", "event_type", name="uq_booking_event_delivery"),
    )
