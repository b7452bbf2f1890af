"""
Pydantic schemas for the bay booking engine.
"""

from .base import StandardizedModel, StrictModel, format_cents
from .booking import (
    BookingSummary,
    CancellationResult,
    ConfirmationResult,
    DaySchedule,
    ReservationResult,
)
from .capacity import AttendanceSummary, HoldAdjustmentResult, HoldConfig
from .pricing import PriceQuote, PriceSegment

__all__ = [
    "AttendanceSummary",
    "BookingSummary",
    "CancellationResult",
    "ConfirmationResult",
    "DaySchedule",
    "HoldAdjustmentResult",
    "HoldConfig",
    "PriceQuote",
    "PriceSegment",
    "ReservationResult",
    "StandardizedModel",
    "StrictModel",
    "format_cents",
]
