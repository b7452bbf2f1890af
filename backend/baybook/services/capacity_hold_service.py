# backend/baybook/services/capacity_hold_service.py
"""
Capacity Hold Service for the bay booking engine.

League holds claim all, a fixed number, or a percentage of a location's bays
on one local date. Public bookings are checked against the active holds on
their date; the check is an optimistic pre-filter and the atomic booking
insert stays the final arbiter.

All hold times are local wall-clock values compared as minutes since local
midnight. Buffers widen a hold's window but never across midnight.
"""

from __future__ import annotations

from datetime import date, time
import logging
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.enums import HoldStatus, HoldType
from ..core.exceptions import InvalidLocationException, NotFoundException
from ..core.timezone_utils import (
    get_location_today,
    minutes_to_time,
    parse_local_date,
    time_to_minutes,
)
from ..models.capacity_hold import CapacityHold
from ..models.league import LeagueWeek
from ..repositories.capacity_hold_repository import HoldQuery
from ..repositories.factory import RepositoryFactory
from ..schemas.capacity import HoldConfig
from .base import BaseService

logger = logging.getLogger(__name__)

LocalTime = Union[str, time]


def subtract_minutes(value: LocalTime, minutes: int) -> time:
    """Move a local time earlier, stopping at 00:00."""
    if minutes <= 0:
        return minutes_to_time(time_to_minutes(value))
    return minutes_to_time(time_to_minutes(value) - minutes)


def add_minutes(value: LocalTime, minutes: int) -> time:
    """Move a local time later, stopping at 23:59."""
    if minutes <= 0:
        return minutes_to_time(time_to_minutes(value))
    return minutes_to_time(time_to_minutes(value) + minutes)


def reserved_bays_for(
    hold_type: Union[HoldType, str], hold_value: Optional[int], total_bays: int
) -> int:
    """
    Bays a hold policy takes out of public inventory.

    all_bays takes everything, num_bays takes ``hold_value`` bays and
    pct_capacity takes ``ceil(total_bays * hold_value / 100)``. Unknown
    policies are treated as all_bays.
    """
    try:
        policy = HoldType(hold_type)
    except ValueError:
        logger.warning("Unknown hold type %r; treating as all_bays", hold_type)
        return total_bays

    value = int(hold_value or 0)
    if policy == HoldType.ALL_BAYS:
        return total_bays
    if policy == HoldType.NUM_BAYS:
        return value
    # Integer ceiling so 10 bays at 75% is exactly 8
    return -(-total_bays * value // 100)


def effective_window(hold: CapacityHold) -> tuple[int, int]:
    """The hold's window in local minutes, widened by its buffers."""
    start = time_to_minutes(subtract_minutes(hold.start_time, hold.buffer_before_mins or 0))
    end = time_to_minutes(add_minutes(hold.end_time, hold.buffer_after_mins or 0))
    return start, end


def hold_blocks(hold: CapacityHold, total_bays: int, existing_bookings_in_window: int) -> bool:
    """Whether an overlapping hold leaves no public bay for one more booking."""
    if hold.hold_type == HoldType.ALL_BAYS.value:
        return True
    public_bays_available = total_bays - reserved_bays_for(
        hold.hold_type, hold.hold_value, total_bays
    )
    return existing_bookings_in_window >= public_bays_available


def find_blocking_hold(
    holds: Iterable[CapacityHold],
    start_local: LocalTime,
    end_local: LocalTime,
    total_bays: int,
    existing_bookings_in_window: int = 0,
) -> Optional[CapacityHold]:
    """
    First active hold, in encounter order, that blocks ``[start_local, end_local)``.

    Two active holds for the same location and date are not ranked against
    each other; whichever comes first decides.
    """
    requested_start = time_to_minutes(start_local)
    requested_end = time_to_minutes(end_local)

    for hold in holds:
        if hold.status != HoldStatus.ACTIVE.value:
            continue
        hold_start, hold_end = effective_window(hold)
        if requested_start < hold_end and requested_end > hold_start:
            if hold_blocks(hold, total_bays, existing_bookings_in_window):
                return hold
    return None


class CapacityHoldService(BaseService):
    """
    League hold administration and the public-booking conflict check.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.hold_repository = RepositoryFactory.create_capacity_hold_repository(db)
        self.location_repository = RepositoryFactory.create_location_repository(db)
        self.league_repository = RepositoryFactory.create_league_repository(db)

    # Reads

    @BaseService.measure_operation("get_holds_for_date")
    def get_holds_for_date(
        self, location_id: str, hold_date: Union[str, date]
    ) -> List[CapacityHold]:
        """Active holds at a location on a local date, league name loaded."""
        return self.hold_repository.find(
            HoldQuery(
                location_id=location_id,
                hold_date=parse_local_date(hold_date),
                statuses=(HoldStatus.ACTIVE,),
            )
        )

    @BaseService.measure_operation("get_holds_for_league")
    def get_holds_for_league(self, league_id: str) -> List[CapacityHold]:
        """Every hold of a league in date order, whatever its status."""
        return self.hold_repository.find(HoldQuery(league_id=league_id))

    @BaseService.measure_operation("check_hold_conflict")
    def check_hold_conflict(
        self,
        location_id: str,
        hold_date: Union[str, date],
        start_time: LocalTime,
        end_time: LocalTime,
        total_bays: int,
        existing_bookings_in_window: int = 0,
    ) -> Optional[CapacityHold]:
        """
        Return the hold that blocks the requested window, or None.

        Args:
            location_id: Location id
            hold_date: Local date of the booking
            start_time: Local start ("HH:MM" or time)
            end_time: Local end ("HH:MM" or time)
            total_bays: Bay inventory at the location
            existing_bookings_in_window: Public bookings already in the window
        """
        holds = self.get_holds_for_date(location_id, hold_date)
        blocking = find_blocking_hold(
            holds, start_time, end_time, total_bays, existing_bookings_in_window
        )
        if blocking is not None:
            self.logger.info(
                "Hold %s (league %s) blocks %s %s-%s at location %s",
                blocking.id,
                blocking.league_id,
                hold_date,
                start_time,
                end_time,
                location_id,
            )
        return blocking

    @BaseService.measure_operation("get_todays_hold")
    def get_todays_hold(self, location_id: str) -> Optional[CapacityHold]:
        """First active hold on the venue's current local date (league night banner)."""
        location = self.location_repository.get_by_id(location_id)
        if location is None:
            raise InvalidLocationException(location_id)
        today = get_location_today(location, self.now())
        holds = self.get_holds_for_date(location_id, today)
        return holds[0] if holds else None

    # Administration

    @BaseService.measure_operation("generate_holds_for_league")
    def generate_holds_for_league(
        self,
        league_id: str,
        location_id: str,
        start_time: LocalTime,
        end_time: LocalTime,
        weeks: Sequence[LeagueWeek],
        config: HoldConfig,
    ) -> List[CapacityHold]:
        """One active hold per league week, all sharing the season config."""
        if not weeks:
            return []

        start = minutes_to_time(time_to_minutes(start_time))
        end = minutes_to_time(time_to_minutes(end_time))
        rows = [
            CapacityHold(
                league_id=league_id,
                league_week_id=week.id,
                location_id=location_id,
                hold_date=week.date,
                start_time=start,
                end_time=end,
                hold_type=HoldType(config.hold_type).value,
                hold_value=config.hold_value,
                buffer_before_mins=config.buffer_before_mins,
                buffer_after_mins=config.buffer_after_mins,
                status=HoldStatus.ACTIVE.value,
            )
            for week in weeks
        ]
        with self.transaction():
            created = self.hold_repository.bulk_insert(rows)

        self.logger.info(f"Generated {len(created)} capacity holds for league {league_id}")
        return created

    @BaseService.measure_operation("release_holds_for_league")
    def release_holds_for_league(self, league_id: str) -> int:
        """Permanently release a cancelled league's active holds."""
        with self.transaction():
            released = self.hold_repository.set_status_for_league(
                league_id, HoldStatus.ACTIVE, HoldStatus.RELEASED
            )
        self.logger.info("Released %d holds for league %s", released, league_id)
        return released

    def _set_hold_status(self, hold_id: str, status: HoldStatus) -> CapacityHold:
        with self.transaction():
            hold = self.hold_repository.update(hold_id, status=status.value)
            if hold is None:
                raise NotFoundException(
                    "Capacity hold not found", code="HOLD_NOT_FOUND", details={"hold_id": hold_id}
                )
        return hold

    @BaseService.measure_operation("suspend_hold")
    def suspend_hold(self, hold_id: str) -> CapacityHold:
        """Skip one occurrence (holiday, no attendance)."""
        return self._set_hold_status(hold_id, HoldStatus.SUSPENDED)

    @BaseService.measure_operation("activate_hold")
    def activate_hold(self, hold_id: str) -> CapacityHold:
        return self._set_hold_status(hold_id, HoldStatus.ACTIVE)

    @BaseService.measure_operation("update_hold_config")
    def update_hold_config(self, league_id: str, config: HoldConfig) -> int:
        """
        Apply a new hold config to the league's active holds from today on.

        Past and suspended holds keep their old values.
        """
        league = self.league_repository.get_by_id(league_id)
        today = self.now().date()
        if league is not None:
            location = self.location_repository.get_by_id(league.location_id)
            if location is not None:
                today = get_location_today(location, self.now())

        with self.transaction():
            holds = self.hold_repository.find(
                HoldQuery(
                    league_id=league_id,
                    on_or_after=today,
                    statuses=(HoldStatus.ACTIVE,),
                )
            )
            for hold in holds:
                hold.hold_type = HoldType(config.hold_type).value
                hold.hold_value = config.hold_value
                hold.buffer_before_mins = config.buffer_before_mins
                hold.buffer_after_mins = config.buffer_after_mins
            self.db.flush()

        self.logger.info(
            "Updated hold config on %d future holds for league %s", len(holds), league_id
        )
        return len(holds)
