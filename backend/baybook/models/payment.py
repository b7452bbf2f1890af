# backend/baybook/models/payment.py
"""Payment record attached to a booking."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import PaymentStatus
from ..database import Base
from .types import UTCDateTime


class Payment(Base):
    """
    One gateway charge for a booking.

    A reservation starts with a pending row whose intent id carries the
    temporary prefix; the real gateway intent id replaces it once the client
    starts paying. Rows that still hold a temporary id were never charged.
    """

    __tablename__ = "payments"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=False, index=True)
    stripe_payment_intent_id = Column(String(255), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    refund_id = Column(String(255), nullable=True)
    refund_amount_cents = Column(Integer, nullable=True)

    processed_at = Column(UTCDateTime, nullable=True)
    refunded_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    booking = relationship("Booking", back_populates="payments")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed', 'refunded')",
            name="ck_payments_status",
        ),
        CheckConstraint("amount_cents >= 0", name="check_payment_amount_non_negative"),
    )

    def has_temporary_intent(self, prefix: str) -> bool:
        return not self.stripe_payment_intent_id or self.stripe_payment_intent_id.startswith(prefix)

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.status} {self.amount_cents}>"
