# backend/baybook/tasks/celery_app.py
"""
Celery application for background housekeeping.

Runs the reservation sweep and the league attendance cutoff sweep. Booking
correctness never depends on the worker being up: expiry is enforced lazily
on every payment-adjacent call.
"""

from typing import Any

from celery import Celery
from celery.signals import setup_logging

from ..core.config import settings
from ..core.log_config import configure_logging

EXPIRE_RESERVATIONS_TASK = "reservations.expire_stale_reservations"
ATTENDANCE_CUTOFF_TASK = "leagues.process_attendance_cutoffs"


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    celery_app = Celery("baybook", broker=settings.celery_broker_url)

    celery_app.conf.update(
        {
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            "timezone": "UTC",
            "enable_utc": True,
            "task_ignore_result": True,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "task_soft_time_limit": 60,
            "task_time_limit": 120,
            "worker_hijack_root_logger": False,
        }
    )

    # Force import so the tasks are registered even without autodiscovery
    celery_app.conf.imports = (
        "baybook.tasks.reservation_tasks",
        "baybook.tasks.league_tasks",
    )

    celery_app.conf.beat_schedule = {
        "expire-stale-reservations": {
            "task": EXPIRE_RESERVATIONS_TASK,
            "schedule": float(settings.expired_reservation_sweep_seconds),
            "options": {"expires": settings.expired_reservation_sweep_seconds},
        },
        "process-attendance-cutoffs": {
            "task": ATTENDANCE_CUTOFF_TASK,
            "schedule": float(settings.attendance_cutoff_sweep_seconds),
            "options": {"expires": settings.attendance_cutoff_sweep_seconds},
        },
    }

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    configure_logging()


celery_app = create_celery_app()
