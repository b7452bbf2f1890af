"""
Injectable time source.

Every expiry and cancellation-window decision reads the clock handed to the
service, so tests can move time forward without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as an aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self._current = ensure_utc(current)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = ensure_utc(current)

    def advance(self, **delta: float) -> datetime:
        self._current = self._current + timedelta(**delta)
        return self._current


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
