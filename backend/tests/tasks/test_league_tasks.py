"""Tests for the periodic attendance cutoff task."""

from contextlib import contextmanager
from unittest.mock import Mock

from baybook.schemas.capacity import AttendanceCutoffRun
from baybook.tasks import league_tasks
from baybook.tasks.celery_app import ATTENDANCE_CUTOFF_TASK, celery_app


def test_cutoff_sweep_is_scheduled():
    schedule = celery_app.conf.beat_schedule["process-attendance-cutoffs"]
    assert schedule["task"] == ATTENDANCE_CUTOFF_TASK
    assert "baybook.tasks.league_tasks" in celery_app.conf.imports


def test_cutoff_task_reports_counts(db, monkeypatch):
    @contextmanager
    def session_scope():
        yield db

    service = Mock()
    service.process_attendance_cutoffs.return_value = AttendanceCutoffRun(
        locked_weeks=["w1", "w2"], adjusted_weeks=["w1"], failed_weeks=[]
    )
    monkeypatch.setattr(league_tasks, "get_db_session", session_scope)
    monkeypatch.setattr(league_tasks, "AttendanceService", lambda session: service)

    assert league_tasks.process_attendance_cutoffs() == {
        "locked": 2,
        "adjusted": 1,
        "failed": 0,
    }
