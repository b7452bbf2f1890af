"""Tests for best-effort side effects and the metrics they leave behind."""

from unittest.mock import Mock

from baybook.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics
from baybook.services.side_effects import run_side_effect


def _failures(effect: str) -> float:
    value = REGISTRY.get_sample_value(
        "baybook_side_effect_failures_total", {"effect": effect}
    )
    return value or 0.0


def test_successful_side_effect():
    func = Mock()

    result = run_side_effect("realtime_push", func, "loc", "bay", booking_id="b1")

    assert result.ok is True
    assert result.error is None
    func.assert_called_once_with("loc", "bay", booking_id="b1")


def test_failure_is_reported_and_counted_not_raised():
    before = _failures("booking_confirmation")

    result = run_side_effect(
        "booking_confirmation", Mock(side_effect=RuntimeError("smtp down"))
    )

    assert result.ok is False
    assert result.error == "smtp down"
    assert _failures("booking_confirmation") == before + 1


def test_exposition_includes_domain_counters():
    prometheus_metrics.inc_reservation("reserved")

    body = prometheus_metrics.get_metrics().decode()

    assert "baybook_reservations_total" in body
    assert prometheus_metrics.get_content_type().startswith("text/plain")
