# backend/baybook/models/types.py
"""
Custom SQLAlchemy types that work across different database backends.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, String, TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.sql.type_api import TypeDecorator as _TypeDecorator

    TypeDecoratorProtocol = _TypeDecorator[Any]
else:
    TypeDecoratorProtocol = TypeDecorator


class UTCDateTime(TypeDecoratorProtocol):
    """
    Timestamp column that always hands back aware UTC datetimes.

    PostgreSQL stores ``timestamptz``. SQLite has no timezone support, so the
    value is stored as naive UTC and the tzinfo is re-attached on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class DaysOfWeekType(TypeDecoratorProtocol):
    """
    Comma-separated ISO weekday numbers (1=Monday .. 7=Sunday).

    An empty or null value means the row applies every day.
    """

    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[str]:
        if not value:
            return None
        return ",".join(str(int(day)) for day in sorted(set(value)))

    def process_result_value(self, value: Optional[str], dialect: Any) -> list[int]:
        if not value:
            return []
        return [int(part) for part in value.split(",") if part.strip()]
