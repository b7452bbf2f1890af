# backend/baybook/tasks/reservation_tasks.py
"""
Periodic reservation housekeeping.

Flips lapsed ``reserved`` bookings to ``expired`` so reports and admin views
stop showing them. Reads already hide lapsed reservations on their own.
"""

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from celery import shared_task

from ..database import get_db_session
from ..services.booking_service import BookingService
from .celery_app import EXPIRE_RESERVATIONS_TASK

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@_typed_shared_task(name=EXPIRE_RESERVATIONS_TASK, ignore_result=True)
def expire_stale_reservations() -> Dict[str, int]:
    """Expire every reservation whose hold window has passed."""
    with get_db_session() as db:
        expired = BookingService(db).expire_stale_reservations()
    if expired:
        logger.info("[RESERVATIONS] Expired %d stale reservation(s)", expired)
    return {"expired": expired}
