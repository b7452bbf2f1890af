"""
Shared fixtures: an in-memory SQLite database per test, a fixed clock and
mock collaborators for the payment gateway, notifications and realtime push.
"""

from typing import List
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from baybook.core.clock import FixedClock
from baybook.database import Base
from baybook.database.session_utils import enable_sqlite_write_locks

# Import models so Base.metadata is populated for create_all.
import baybook.models  # noqa: F401
from baybook.models.location import Bay, Location
from baybook.services.booking_service import BookingService

from .factories import NOW, bays_for, seed_location


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_write_locks(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """A plain session; services commit, so each test gets a fresh database."""
    session = sessionmaker(bind=engine, expire_on_commit=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def location(db) -> Location:
    return seed_location(db)


@pytest.fixture
def bays(db, location) -> List[Bay]:
    return bays_for(db, location)


@pytest.fixture
def payment_gateway() -> Mock:
    gateway = Mock()
    gateway.create_refund.return_value = "re_test_123"
    return gateway


@pytest.fixture
def notifier() -> Mock:
    return Mock()


@pytest.fixture
def realtime() -> Mock:
    return Mock()


@pytest.fixture
def booking_service(db, clock, payment_gateway, notifier, realtime) -> BookingService:
    return BookingService(
        db,
        clock,
        payment_gateway=payment_gateway,
        notification_dispatcher=notifier,
        realtime_publisher=realtime,
    )
