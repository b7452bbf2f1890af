"""
Periodic league housekeeping.

Freezes attendance once a week's cutoff passes and shrinks capacity holds
for leagues that opted into automatic adjustment.
"""

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from celery import shared_task

from ..database import get_db_session
from ..services.attendance_service import AttendanceService
from .celery_app import ATTENDANCE_CUTOFF_TASK

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_shared_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for Celery's shared_task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], shared_task(*args, **kwargs))


@_typed_shared_task(name=ATTENDANCE_CUTOFF_TASK, ignore_result=True)
def process_attendance_cutoffs() -> Dict[str, int]:
    """Lock attendance for every week past its cutoff."""
    with get_db_session() as db:
        run = AttendanceService(db).process_attendance_cutoffs()
    if run.locked_weeks or run.failed_weeks:
        logger.info(
            "[LEAGUES] Locked %d week(s), adjusted %d hold(s), %d failure(s)",
            len(run.locked_weeks),
            len(run.adjusted_weeks),
            len(run.failed_weeks),
        )
    return {
        "locked": len(run.locked_weeks),
        "adjusted": len(run.adjusted_weeks),
        "failed": len(run.failed_weeks),
    }
