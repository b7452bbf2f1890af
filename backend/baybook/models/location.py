# backend/baybook/models/location.py
"""Venue and bay inventory."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Location(Base):
    """
    A facility with a fixed inventory of bays.

    ``timezone`` is the IANA zone every local wall-clock value at this venue
    is interpreted in; null falls back to the configured default.
    """

    __tablename__ = "locations"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(120), nullable=False)
    timezone = Column(String(64), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    bays = relationship("Bay", back_populates="location", order_by="Bay.bay_number")

    def __repr__(self) -> str:
        return f"<Location {self.id} {self.name!r}>"


class Bay(Base):
    __tablename__ = "bays"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    location_id = Column(String(26), ForeignKey("locations.id"), nullable=False, index=True)
    name = Column(String(60), nullable=False)
    bay_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    location = relationship("Location", back_populates="bays")

    __table_args__ = (UniqueConstraint("location_id", "bay_number", name="uq_bay_number"),)

    def __repr__(self) -> str:
        return f"<Bay {self.id} #{self.bay_number}>"
