"""
Fire-and-forget side effects.

Notifications and realtime pushes run after the booking state has
committed. Their outcome is reported as a :class:`SideEffectResult` that
callers may log or inspect, and is never raised.
"""

from dataclasses import dataclass
import logging
from typing import Any, Callable, Optional

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SideEffectResult:
    name: str
    ok: bool
    error: Optional[str] = None


def run_side_effect(
    name: str, func: Callable[..., Any], *args: Any, **kwargs: Any
) -> SideEffectResult:
    """Call ``func``; log and count any exception instead of propagating it."""
    try:
        func(*args, **kwargs)
    except Exception as exc:
        logger.error("Side effect %s failed: %s", name, exc, exc_info=True)
        prometheus_metrics.inc_side_effect_failure(name)
        return SideEffectResult(name=name, ok=False, error=str(exc))
    return SideEffectResult(name=name, ok=True)
