# backend/baybook/models/capacity_hold.py
"""League claims on bay capacity."""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import HoldStatus, HoldType
from ..database import Base
from .types import UTCDateTime


class CapacityHold(Base):
    """
    A league's claim on some or all of a location's bays for one local date.

    Times are local wall-clock values. Buffers pad the nominal window for
    setup and teardown. Only active holds block public bookings.
    """

    __tablename__ = "capacity_holds"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    league_id = Column(String(26), ForeignKey("leagues.id"), nullable=False, index=True)
    # Null for a season-level hold
    league_week_id = Column(String(26), ForeignKey("league_weeks.id"), nullable=True, index=True)
    location_id = Column(String(26), ForeignKey("locations.id"), nullable=False)

    hold_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    hold_type = Column(String(20), nullable=False, default=HoldType.ALL_BAYS.value)
    hold_value = Column(Integer, nullable=True)
    buffer_before_mins = Column(Integer, nullable=False, default=0)
    buffer_after_mins = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=HoldStatus.ACTIVE.value)

    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(UTCDateTime, nullable=True, onupdate=func.now())

    league = relationship("League", back_populates="capacity_holds")

    __table_args__ = (
        CheckConstraint(
            "hold_type IN ('all_bays', 'num_bays', 'pct_capacity')", name="ck_hold_type"
        ),
        CheckConstraint("status IN ('active', 'suspended', 'released')", name="ck_hold_status"),
        CheckConstraint(
            "buffer_before_mins >= 0 AND buffer_after_mins >= 0", name="check_buffers_non_negative"
        ),
        Index("ix_capacity_holds_location_date", "location_id", "hold_date", "status"),
    )

    @property
    def league_name(self) -> str | None:
        return self.league.name if self.league is not None else None

    def __repr__(self) -> str:
        return (
            f"<CapacityHold {self.id} {self.hold_date} "
            f"{self.hold_type}={self.hold_value} {self.status}>"
        )
