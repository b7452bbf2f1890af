# backend/baybook/models/league.py
"""League programs, their weekly occurrences, players and attendance."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import AttendanceStatus, EnrollmentStatus, HoldType
from ..database import Base
from .types import UTCDateTime


class League(Base):
    """
    A recurring weekly league at one location.

    The capacity_hold_* columns are the season configuration every weekly
    hold is generated from; attendance adjustments never grow a week past it.

    Leagues with ``attendance_required`` have each week's answers locked
    ``attendance_cutoff_hours`` before the local start time. Only leagues with
    ``attendance_auto_adjust`` then have that week's hold shrunk.
    """

    __tablename__ = "leagues"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(120), nullable=False)
    location_id = Column(String(26), ForeignKey("locations.id"), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    players_per_bay = Column(Integer, nullable=True)

    capacity_hold_type = Column(String(20), nullable=False, default=HoldType.ALL_BAYS.value)
    capacity_hold_value = Column(Integer, nullable=True)
    buffer_before_mins = Column(Integer, nullable=False, default=0)
    buffer_after_mins = Column(Integer, nullable=False, default=0)
    attendance_required = Column(Boolean, nullable=False, default=False)
    attendance_auto_adjust = Column(Boolean, nullable=False, default=False)
    attendance_cutoff_hours = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default="active")
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    weeks = relationship("LeagueWeek", back_populates="league", order_by="LeagueWeek.week_number")
    players = relationship("LeaguePlayer", back_populates="league")
    capacity_holds = relationship("CapacityHold", back_populates="league")


class LeagueWeek(Base):
    __tablename__ = "league_weeks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    league_id = Column(String(26), ForeignKey("leagues.id"), nullable=False, index=True)
    week_number = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="scheduled")

    league = relationship("League", back_populates="weeks")
    attendance = relationship("LeagueAttendance", back_populates="week")

    __table_args__ = (UniqueConstraint("league_id", "week_number", name="uq_league_week_number"),)


class LeaguePlayer(Base):
    __tablename__ = "league_players"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    league_id = Column(String(26), ForeignKey("leagues.id"), nullable=False, index=True)
    user_id = Column(String(26), nullable=True)
    display_name = Column(String(120), nullable=False)
    enrollment_status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)

    league = relationship("League", back_populates="players")


class LeagueAttendance(Base):
    """One player's answer for one league week."""

    __tablename__ = "league_attendance"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    league_week_id = Column(String(26), ForeignKey("league_weeks.id"), nullable=False)
    league_player_id = Column(String(26), ForeignKey("league_players.id"), nullable=False)
    user_id = Column(String(26), nullable=True)
    status = Column(String(20), nullable=False, default=AttendanceStatus.NO_RESPONSE.value)
    locked = Column(Boolean, nullable=False, default=False)
    responded_at = Column(UTCDateTime, nullable=True)

    week = relationship("LeagueWeek", back_populates="attendance")
    player = relationship("LeaguePlayer")

    __table_args__ = (
        UniqueConstraint("league_week_id", "league_player_id", name="uq_attendance_week_player"),
    )
