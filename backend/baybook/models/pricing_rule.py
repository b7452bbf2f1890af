# backend/baybook/models/pricing_rule.py
"""Named hourly rate bands per location."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Time
import ulid

from ..database import Base
from .types import DaysOfWeekType


class PricingRule(Base):
    """
    A named rate band such as "Standard Rate" or "Off-Peak Rate".

    start_time/end_time are local wall-clock bounds and may wrap past
    midnight (start later than end).
    """

    __tablename__ = "pricing_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    location_id = Column(String(26), ForeignKey("locations.id"), nullable=False, index=True)
    name = Column(String(60), nullable=False)
    hourly_rate_cents = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    days_of_week = Column(DaysOfWeekType, nullable=True)

    __table_args__ = (
        CheckConstraint("hourly_rate_cents >= 0", name="check_rate_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PricingRule {self.name!r} {self.hourly_rate_cents}c/h>"
