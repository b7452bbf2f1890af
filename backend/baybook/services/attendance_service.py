# backend/baybook/services/attendance_service.py
"""
Attendance Service for league weeks.

Collects each player's answer for a league week and, once the headcount is
known, shrinks that week's capacity hold to the bays actually needed. Hold
adjustment only ever reduces a week below the league's season config.

The cutoff sweep locks each week a configurable number of hours before the
league starts and, for leagues that opt in, adjusts the hold right after.
"""

from datetime import datetime, timedelta
import logging
import math
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import AttendanceStatus, HoldStatus, HoldType
from ..core.exceptions import (
    AttendanceLockedException,
    DomainException,
    LeagueNotFoundException,
    NotFoundException,
)
from ..core.timezone_utils import local_to_utc, resolve_timezone
from ..models.league import League, LeagueAttendance, LeagueWeek
from ..repositories.factory import RepositoryFactory
from ..schemas.capacity import AttendanceCutoffRun, AttendanceSummary, HoldAdjustmentResult
from .base import BaseService
from .capacity_hold_service import reserved_bays_for

logger = logging.getLogger(__name__)


def bays_needed_for(confirmed: int, players_per_bay: int) -> int:
    if confirmed <= 0:
        return 0
    return math.ceil(confirmed / players_per_bay)


class AttendanceService(BaseService):
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.league_repository = RepositoryFactory.create_league_repository(db)
        self.hold_repository = RepositoryFactory.create_capacity_hold_repository(db)
        self.location_repository = RepositoryFactory.create_location_repository(db)

    @BaseService.measure_operation("generate_attendance_rows")
    def generate_attendance_rows(self, league_id: str, week_id: str) -> List[LeagueAttendance]:
        """
        Create a no_response row per active player for the week.

        Idempotent: if the week already has rows they are returned unchanged.
        """
        existing = self.league_repository.get_attendance_rows(week_id)
        if existing:
            return existing

        players = self.league_repository.get_active_players(league_id)
        if not players:
            return []

        rows = [
            LeagueAttendance(
                league_week_id=week_id,
                league_player_id=player.id,
                user_id=player.user_id,
                status=AttendanceStatus.NO_RESPONSE.value,
                locked=False,
            )
            for player in players
        ]
        with self.transaction():
            inserted = self.league_repository.add_attendance_rows(rows)

        self.logger.info(f"Generated {len(inserted)} attendance rows for week {week_id}")
        return inserted

    @BaseService.measure_operation("update_attendance")
    def update_attendance(
        self, league_player_id: str, week_id: str, status: AttendanceStatus
    ) -> LeagueAttendance:
        """
        Record a player's answer.

        Raises:
            NotFoundException: no attendance row for this player and week
            AttendanceLockedException: the week has been locked
        """
        with self.transaction():
            row = self.league_repository.get_attendance(week_id, league_player_id)
            if row is None:
                raise NotFoundException(
                    "Attendance record not found for this week.",
                    code="ATTENDANCE_NOT_FOUND",
                    details={"league_week_id": week_id, "league_player_id": league_player_id},
                )
            if row.locked:
                raise AttendanceLockedException(week_id)

            row.status = AttendanceStatus(status).value
            row.responded_at = self.now()
            self.db.flush()
        return row

    @BaseService.measure_operation("get_attendance_summary")
    def get_attendance_summary(
        self, week_id: str, players_per_bay: Optional[int] = None
    ) -> AttendanceSummary:
        per_bay = players_per_bay or settings.default_players_per_bay
        counts = self.league_repository.count_attendance_by_status(week_id)
        confirmed = counts[AttendanceStatus.CONFIRMED]
        week = self.league_repository.get_week(week_id)

        return AttendanceSummary(
            league_week_id=week_id,
            week_date=week.date if week is not None else None,
            total_players=sum(counts.values()),
            confirmed=confirmed,
            declined=counts[AttendanceStatus.DECLINED],
            no_response=counts[AttendanceStatus.NO_RESPONSE],
            bays_needed=bays_needed_for(confirmed, per_bay),
            locked=self.league_repository.is_week_locked(week_id),
        )

    @BaseService.measure_operation("lock_attendance")
    def lock_attendance(self, week_id: str) -> int:
        """Freeze every answer for the week. Returns the number of rows locked."""
        with self.transaction():
            locked = self.league_repository.lock_week(week_id)
        self.logger.info(f"Attendance locked for week {week_id}")
        return locked

    @BaseService.measure_operation("adjust_capacity_hold")
    def adjust_capacity_hold(self, league_id: str, week_id: str) -> HoldAdjustmentResult:
        """
        Shrink the week's hold to the bays the confirmed players need.

        - 0 confirmed: suspend the week's active hold
        - bays needed >= the season's reserved bays: leave the hold alone
        - otherwise: rewrite the hold to num_bays with the bays needed

        Raises:
            LeagueNotFoundException: unknown league
        """
        league = self.league_repository.get_by_id(league_id)
        if league is None:
            raise LeagueNotFoundException(league_id)

        players_per_bay = league.players_per_bay or settings.default_players_per_bay
        summary = self.get_attendance_summary(week_id, players_per_bay)
        total_bays = self.location_repository.count_bays(league.location_id)
        original_bays = reserved_bays_for(
            league.capacity_hold_type, league.capacity_hold_value, total_bays
        )

        if summary.confirmed == 0:
            with self.transaction():
                hold = self.hold_repository.find_active_for_week(league_id, week_id)
                if hold is not None:
                    hold.status = HoldStatus.SUSPENDED.value
                    self.db.flush()
            self.logger.info(f"Suspended hold for week {week_id}: 0 confirmed players")
            return HoldAdjustmentResult(
                adjusted=True,
                bays_needed=0,
                original_bays=original_bays,
                hold_id=hold.id if hold is not None else None,
            )

        bays_needed = summary.bays_needed
        if bays_needed >= original_bays:
            self.logger.info(
                f"Hold for week {week_id} unchanged: {bays_needed} bays needed "
                f">= {original_bays} original"
            )
            return HoldAdjustmentResult(
                adjusted=False, bays_needed=bays_needed, original_bays=original_bays
            )

        with self.transaction():
            hold = self.hold_repository.find_active_for_week(league_id, week_id)
            if hold is not None:
                hold.hold_type = HoldType.NUM_BAYS.value
                hold.hold_value = bays_needed
                self.db.flush()
            else:
                self.logger.warning("No active hold for week %s of league %s", week_id, league_id)

        self.logger.info(f"Adjusted hold for week {week_id}: {original_bays} -> {bays_needed} bays")
        return HoldAdjustmentResult(
            adjusted=True,
            bays_needed=bays_needed,
            original_bays=original_bays,
            hold_id=hold.id if hold is not None else None,
        )

    # Cutoff sweep

    def attendance_cutoff_at(self, league: League, week: LeagueWeek) -> datetime:
        """UTC instant the week's answers freeze: local start minus the cutoff hours."""
        location = self.location_repository.get_by_id(league.location_id)
        tz = resolve_timezone(location.timezone if location is not None else None)
        hours = league.attendance_cutoff_hours
        if hours is None:
            hours = settings.default_attendance_cutoff_hours
        return local_to_utc(week.date, league.start_time, tz) - timedelta(hours=hours)

    @BaseService.measure_operation("process_attendance_cutoffs")
    def process_attendance_cutoffs(self) -> AttendanceCutoffRun:
        """
        Lock every open league week whose attendance cutoff has passed.

        Leagues with ``attendance_auto_adjust`` then get the week's hold
        adjusted; the others only log the headcount. A week that fails is
        logged and skipped so the rest of the pass still runs.
        """
        now = self.now()
        run = AttendanceCutoffRun()

        for league, week in self.league_repository.get_open_attendance_weeks():
            if not self.league_repository.has_unlocked_attendance(week.id):
                continue
            if now < self.attendance_cutoff_at(league, week):
                continue
            try:
                self._close_week(league, week, run)
            except DomainException as exc:
                self.logger.error(
                    "Attendance cutoff failed for league %s week %s: %s",
                    league.id,
                    week.week_number,
                    exc.message,
                )
                run.failed_weeks.append(week.id)

        return run

    def _close_week(self, league: League, week: LeagueWeek, run: AttendanceCutoffRun) -> None:
        self.lock_attendance(week.id)
        run.locked_weeks.append(week.id)

        if not league.attendance_auto_adjust:
            per_bay = league.players_per_bay or settings.default_players_per_bay
            summary = self.get_attendance_summary(week.id, per_bay)
            self.logger.info(
                "Attendance locked (informational) for league %s week %s: %d/%d confirmed, "
                "%d bays would be needed",
                league.name,
                week.week_number,
                summary.confirmed,
                summary.total_players,
                summary.bays_needed,
            )
            return

        result = self.adjust_capacity_hold(league.id, week.id)
        if result.adjusted:
            run.adjusted_weeks.append(week.id)
