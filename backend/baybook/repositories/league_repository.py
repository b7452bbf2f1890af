# backend/baybook/repositories/league_repository.py
"""League, week, roster and attendance data access."""

from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.enums import AttendanceStatus, EnrollmentStatus
from ..models.league import League, LeagueAttendance, LeaguePlayer, LeagueWeek
from .base_repository import BaseRepository

RUNNING_LEAGUE_STATUSES = ("active", "registration")
OPEN_WEEK_STATUSES = ("scheduled", "active")


class LeagueRepository(BaseRepository[League]):
    def __init__(self, db: Session):
        super().__init__(db, League)

    def get_week(self, week_id: str) -> Optional[LeagueWeek]:
        return self.db.get(LeagueWeek, week_id)

    def get_active_players(self, league_id: str) -> List[LeaguePlayer]:
        stmt = (
            select(LeaguePlayer)
            .where(
                LeaguePlayer.league_id == league_id,
                LeaguePlayer.enrollment_status == EnrollmentStatus.ACTIVE.value,
            )
            .order_by(LeaguePlayer.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_attendance_rows(self, week_id: str) -> List[LeagueAttendance]:
        stmt = (
            select(LeagueAttendance)
            .where(LeagueAttendance.league_week_id == week_id)
            .order_by(LeagueAttendance.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_attendance(self, week_id: str, player_id: str) -> Optional[LeagueAttendance]:
        stmt = select(LeagueAttendance).where(
            LeagueAttendance.league_week_id == week_id,
            LeagueAttendance.league_player_id == player_id,
        )
        return self.db.execute(stmt).scalars().first()

    def add_attendance_rows(self, rows: List[LeagueAttendance]) -> List[LeagueAttendance]:
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def count_attendance_by_status(self, week_id: str) -> Dict[AttendanceStatus, int]:
        stmt = (
            select(LeagueAttendance.status, func.count(LeagueAttendance.id))
            .where(LeagueAttendance.league_week_id == week_id)
            .group_by(LeagueAttendance.status)
        )
        counts = {status: 0 for status in AttendanceStatus}
        for status, total in self.db.execute(stmt).all():
            counts[AttendanceStatus(status)] = int(total)
        return counts

    def is_week_locked(self, week_id: str) -> bool:
        stmt = select(LeagueAttendance.id).where(
            LeagueAttendance.league_week_id == week_id,
            LeagueAttendance.locked.is_(True),
        )
        return self.db.execute(stmt.limit(1)).first() is not None

    def lock_week(self, week_id: str) -> int:
        rows = self.get_attendance_rows(week_id)
        for row in rows:
            row.locked = True
        self.db.flush()
        return len(rows)

    def get_open_attendance_weeks(self) -> List[Tuple[League, LeagueWeek]]:
        """Open weeks of running leagues that collect attendance, oldest first."""
        stmt = (
            select(League, LeagueWeek)
            .join(LeagueWeek, LeagueWeek.league_id == League.id)
            .where(
                League.attendance_required.is_(True),
                League.status.in_(RUNNING_LEAGUE_STATUSES),
                LeagueWeek.status.in_(OPEN_WEEK_STATUSES),
            )
            .order_by(LeagueWeek.date, League.id)
        )
        return [(league, week) for league, week in self.db.execute(stmt).all()]

    def has_unlocked_attendance(self, week_id: str) -> bool:
        stmt = select(LeagueAttendance.id).where(
            LeagueAttendance.league_week_id == week_id,
            LeagueAttendance.locked.is_(False),
        )
        return self.db.execute(stmt.limit(1)).first() is not None
