"""
Timezone utilities for the bay booking engine.

Bookings are stored as absolute UTC instants while customers, holds and rate
bands speak in the venue's local wall-clock time. These helpers convert
between the two using the location's timezone.
"""

from datetime import date, datetime, time
import logging
import re
from typing import TYPE_CHECKING, Optional, Union

import pytz

from .config import settings
from .exceptions import ValidationException

if TYPE_CHECKING:
    from ..models.location import Location

logger = logging.getLogger(__name__)

_TWELVE_HOUR = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_TWENTY_FOUR_HOUR = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")

MINUTES_PER_DAY = 24 * 60
LAST_MINUTE_OF_DAY = MINUTES_PER_DAY - 1


def resolve_timezone(name: Optional[str]) -> pytz.BaseTzInfo:
    """
    Return a pytz timezone for an IANA name, falling back to the default.

    Args:
        name: IANA timezone name, may be empty

    Returns:
        pytz timezone object
    """
    if not name:
        return pytz.timezone(settings.default_timezone)
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(
            "Unknown timezone %r; falling back to %s", name, settings.default_timezone
        )
        return pytz.timezone(settings.default_timezone)


def get_location_timezone(location: "Location") -> pytz.BaseTzInfo:
    """Get the venue's timezone (default zone when the location has none)."""
    return resolve_timezone(location.timezone)


def parse_local_time(value: Union[str, time]) -> time:
    """
    Parse a local wall-clock time.

    Accepts ``time`` objects, 24-hour strings ("14:30", "14:30:00") and
    12-hour strings ("2:30 PM").

    Raises:
        ValidationException: If the value cannot be parsed
    """
    if isinstance(value, time):
        return value.replace(tzinfo=None)
    if not isinstance(value, str):
        raise ValidationException(
            f"Invalid time format: {value!r}", code="INVALID_TIME", details={"time": value}
        )

    match = _TWELVE_HOUR.match(value)
    if match:
        hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3)
        if not 1 <= hours <= 12 or minutes > 59:
            raise ValidationException(
                f"Invalid time format: {value}", code="INVALID_TIME", details={"time": value}
            )
        if period.upper() == "PM":
            hours = 12 if hours == 12 else hours + 12
        else:
            hours = 0 if hours == 12 else hours
        return time(hours, minutes)

    match = _TWENTY_FOUR_HOUR.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        seconds = int(match.group(3) or 0)
        if hours > 23 or minutes > 59 or seconds > 59:
            raise ValidationException(
                f"Invalid time format: {value}", code="INVALID_TIME", details={"time": value}
            )
        return time(hours, minutes, seconds)

    raise ValidationException(
        f"Invalid time format: {value}", code="INVALID_TIME", details={"time": value}
    )


def parse_local_date(value: Union[str, date]) -> date:
    """Parse a YYYY-MM-DD local calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as exc:
        raise ValidationException(
            "Invalid date format. Expected YYYY-MM-DD",
            code="INVALID_DATE",
            details={"date": value},
        ) from exc


def local_to_utc(local_date: date, local_time: time, tz: pytz.BaseTzInfo) -> datetime:
    """
    Convert a local date and wall-clock time to an aware UTC datetime.

    Ambiguous or skipped wall-clock times around DST changes resolve to the
    standard-time interpretation.
    """
    naive = datetime.combine(local_date, local_time)
    return tz.localize(naive, is_dst=False).astimezone(pytz.UTC)


def utc_to_local(dt: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Convert a UTC datetime (naive means UTC) to the given timezone."""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(tz)


def get_location_today(location: "Location", now: datetime) -> date:
    """Today's calendar date at the venue."""
    return utc_to_local(now, get_location_timezone(location)).date()


def time_to_minutes(value: Union[str, time]) -> int:
    """Minutes since local midnight."""
    parsed = parse_local_time(value)
    return parsed.hour * 60 + parsed.minute


def minutes_to_time(minutes: int) -> time:
    """Inverse of :func:`time_to_minutes`, clamped to the local day."""
    clamped = max(0, min(LAST_MINUTE_OF_DAY, minutes))
    return time(clamped // 60, clamped % 60)


def format_hhmm(value: Union[str, time]) -> str:
    parsed = parse_local_time(value)
    return f"{parsed.hour:02d}:{parsed.minute:02d}"
