# backend/baybook/schemas/capacity.py
"""Capacity hold and attendance schemas."""

from datetime import date
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.enums import HoldType
from .base import StandardizedModel, StrictModel


class HoldConfig(StrictModel):
    """
    How much of a location a league claims each occurrence.

    ``hold_value`` is ignored for all_bays, a bay count for num_bays and a
    0-100 percentage for pct_capacity.
    """

    hold_type: HoldType = HoldType.ALL_BAYS
    hold_value: Optional[int] = Field(default=None, ge=0)
    buffer_before_mins: int = Field(default=0, ge=0)
    buffer_after_mins: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_value(self) -> "HoldConfig":
        if self.hold_type == HoldType.PCT_CAPACITY and (
            self.hold_value is None or self.hold_value > 100
        ):
            raise ValueError("pct_capacity holds need a hold_value between 0 and 100")
        if self.hold_type == HoldType.NUM_BAYS and self.hold_value is None:
            raise ValueError("num_bays holds need a hold_value")
        return self


class HoldAdjustmentResult(StandardizedModel):
    adjusted: bool
    bays_needed: int
    original_bays: int
    hold_id: Optional[str] = None


class AttendanceSummary(StandardizedModel):
    """Per-week headcount. Derived, never persisted."""

    league_week_id: str
    week_date: Optional[date] = None
    total_players: int
    confirmed: int
    declined: int
    no_response: int
    bays_needed: int
    locked: bool


class AttendanceCutoffRun(StandardizedModel):
    """Weeks touched by one pass of the attendance cutoff sweep."""

    locked_weeks: List[str] = Field(default_factory=list)
    adjusted_weeks: List[str] = Field(default_factory=list)
    failed_weeks: List[str] = Field(default_factory=list)
