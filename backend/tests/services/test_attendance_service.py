"""Tests for attendance collection, the cutoff sweep and the reduce-only hold adjustment."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from baybook.core.enums import AttendanceStatus, HoldStatus, HoldType
from baybook.core.exceptions import (
    AttendanceLockedException,
    LeagueNotFoundException,
    NotFoundException,
    ServiceException,
)
from baybook.models.capacity_hold import CapacityHold
from baybook.models.league import LeagueWeek
from baybook.schemas.capacity import HoldConfig
from baybook.services.attendance_service import AttendanceService, bays_needed_for
from baybook.services.capacity_hold_service import CapacityHoldService

from ..factories import seed_league, seed_location


@pytest.fixture
def big_location(db):
    return seed_location(db, bay_count=10)


@pytest.fixture
def service(db, clock):
    return AttendanceService(db, clock)


def setup_week(
    db, clock, location, players=16, hold_value=7, hold_type="num_bays", **league_fields
):
    """League holding ``hold_value`` of 10 bays, 2 players per bay, one week."""
    league = seed_league(
        db,
        location,
        players=players,
        hold_type=hold_type,
        hold_value=hold_value,
        **league_fields,
    )
    week = db.query(LeagueWeek).filter(LeagueWeek.league_id == league.id).one()
    CapacityHoldService(db, clock).generate_holds_for_league(
        league.id,
        location.id,
        league.start_time,
        league.end_time,
        [week],
        HoldConfig(hold_type=hold_type, hold_value=hold_value),
    )
    return league, week


def answer(service, week, rows, confirmed, declined=0):
    for row in rows[:confirmed]:
        service.update_attendance(row.league_player_id, week.id, AttendanceStatus.CONFIRMED)
    for row in rows[confirmed : confirmed + declined]:
        service.update_attendance(row.league_player_id, week.id, AttendanceStatus.DECLINED)


def week_hold(db, week) -> CapacityHold:
    return db.query(CapacityHold).filter(CapacityHold.league_week_id == week.id).one()


def test_bays_needed_rounds_up():
    assert bays_needed_for(0, 2) == 0
    assert bays_needed_for(9, 2) == 5
    assert bays_needed_for(8, 4) == 2


class TestAttendanceRows:
    def test_generate_is_idempotent(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=4)

        first = service.generate_attendance_rows(league.id, week.id)
        second = service.generate_attendance_rows(league.id, week.id)

        assert len(first) == 4
        assert {r.id for r in second} == {r.id for r in first}
        assert {r.status for r in first} == {AttendanceStatus.NO_RESPONSE.value}

    def test_summary_counts(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=6)
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=3, declined=1)

        summary = service.get_attendance_summary(week.id, players_per_bay=2)

        assert summary.total_players == 6
        assert summary.confirmed == 3
        assert summary.declined == 1
        assert summary.no_response == 2
        assert summary.bays_needed == 2
        assert summary.week_date == week.date
        assert summary.locked is False

    def test_update_unknown_row(self, db, clock, service, big_location):
        _, week = setup_week(db, clock, big_location, players=1)
        with pytest.raises(NotFoundException):
            service.update_attendance("nobody", week.id, AttendanceStatus.CONFIRMED)

    def test_locked_week_rejects_answers(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=2)
        rows = service.generate_attendance_rows(league.id, week.id)

        assert service.lock_attendance(week.id) == 2
        with pytest.raises(AttendanceLockedException):
            service.update_attendance(rows[0].league_player_id, week.id, "declined")
        assert service.get_attendance_summary(week.id).locked is True


class TestAdjustCapacityHold:
    def test_shrinks_hold_to_bays_needed(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=16, hold_value=7)
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=9)

        result = service.adjust_capacity_hold(league.id, week.id)

        assert result.adjusted is True
        assert result.bays_needed == 5
        assert result.original_bays == 7
        hold = week_hold(db, week)
        assert result.hold_id == hold.id
        assert hold.hold_type == HoldType.NUM_BAYS.value
        assert hold.hold_value == 5

    def test_never_grows_the_hold(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=16, hold_value=5)
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=14)

        result = service.adjust_capacity_hold(league.id, week.id)

        assert result.adjusted is False
        assert result.bays_needed == 7
        assert week_hold(db, week).hold_value == 5

    def test_equal_need_leaves_hold_alone(self, db, clock, service, big_location):
        league, week = setup_week(db, clock, big_location, players=16, hold_value=7)
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=13)

        assert service.adjust_capacity_hold(league.id, week.id).adjusted is False
        assert week_hold(db, week).hold_value == 7

    @pytest.mark.parametrize(
        "hold_type, hold_value, original_bays",
        [("num_bays", 7, 7), ("all_bays", None, 10), ("pct_capacity", 65, 7)],
    )
    def test_no_confirmed_players_suspends_hold(
        self, db, clock, service, big_location, hold_type, hold_value, original_bays
    ):
        league, week = setup_week(
            db, clock, big_location, players=4, hold_type=hold_type, hold_value=hold_value
        )
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=0, declined=4)

        result = service.adjust_capacity_hold(league.id, week.id)

        assert result.adjusted is True
        assert result.bays_needed == 0
        assert result.original_bays == original_bays
        assert week_hold(db, week).status == HoldStatus.SUSPENDED.value

    def test_unknown_league(self, service):
        with pytest.raises(LeagueNotFoundException):
            service.adjust_capacity_hold("missing", "week")


# League starts 18:00 New York (22:00 UTC) on 15 June; the default cutoff is 8 hours
CUTOFF_UTC = datetime(2026, 6, 15, 14, 0, tzinfo=timezone.utc)


class TestAttendanceCutoffs:
    def _league_week(self, db, clock, service, location, confirmed=9, **league_fields):
        league_fields.setdefault("attendance_required", True)
        league, week = setup_week(db, clock, location, players=16, **league_fields)
        rows = service.generate_attendance_rows(league.id, week.id)
        answer(service, week, rows, confirmed=confirmed)
        return league, week

    def test_nothing_happens_before_cutoff(self, db, clock, service, big_location):
        _, week = self._league_week(db, clock, service, big_location)
        clock.set(CUTOFF_UTC - timedelta(seconds=1))

        run = service.process_attendance_cutoffs()

        assert run.locked_weeks == []
        assert service.get_attendance_summary(week.id).locked is False

    def test_auto_adjust_locks_and_shrinks_hold(self, db, clock, service, big_location):
        league, week = self._league_week(
            db, clock, service, big_location, attendance_auto_adjust=True
        )
        clock.set(CUTOFF_UTC)

        run = service.process_attendance_cutoffs()

        assert service.attendance_cutoff_at(league, week) == CUTOFF_UTC
        assert run.locked_weeks == [week.id]
        assert run.adjusted_weeks == [week.id]
        assert service.get_attendance_summary(week.id).locked is True
        assert week_hold(db, week).hold_value == 5

    def test_informational_mode_only_locks(self, db, clock, service, big_location):
        _, week = self._league_week(
            db, clock, service, big_location, attendance_auto_adjust=False
        )
        clock.set(CUTOFF_UTC)

        run = service.process_attendance_cutoffs()

        assert run.locked_weeks == [week.id]
        assert run.adjusted_weeks == []
        assert service.get_attendance_summary(week.id).locked is True
        assert week_hold(db, week).hold_value == 7

    def test_locked_weeks_are_not_processed_again(self, db, clock, service, big_location):
        _, week = self._league_week(
            db, clock, service, big_location, attendance_auto_adjust=True
        )
        clock.set(CUTOFF_UTC)
        service.process_attendance_cutoffs()

        assert service.process_attendance_cutoffs().locked_weeks == []

    def test_league_cutoff_hours_and_opt_out(self, db, clock, service, big_location):
        _, late_week = self._league_week(
            db, clock, service, big_location, attendance_cutoff_hours=2
        )
        self._league_week(db, clock, service, big_location, attendance_required=False)
        clock.set(CUTOFF_UTC)

        assert service.process_attendance_cutoffs().locked_weeks == []
        clock.set(datetime(2026, 6, 15, 20, 0, tzinfo=timezone.utc))
        assert service.process_attendance_cutoffs().locked_weeks == [late_week.id]

    def test_failed_week_is_reported(self, db, clock, service, big_location, monkeypatch):
        _, week = self._league_week(
            db, clock, service, big_location, attendance_auto_adjust=True
        )
        clock.set(CUTOFF_UTC)
        monkeypatch.setattr(
            service,
            "adjust_capacity_hold",
            Mock(side_effect=ServiceException("Database operation failed")),
        )

        run = service.process_attendance_cutoffs()

        assert run.locked_weeks == [week.id]
        assert run.failed_weeks == [week.id]
