# backend/baybook/schemas/pricing.py
"""Price quote schemas. All amounts are integer cents."""

from datetime import datetime
from typing import List

from pydantic import Field, computed_field

from .base import StandardizedModel, format_cents


class PriceSegment(StandardizedModel):
    """A run of consecutive increments billed at the same named rate."""

    rate_name: str
    start: datetime
    end: datetime
    amount_cents: int = Field(..., ge=0)


class PriceQuote(StandardizedModel):
    total_cents: int = Field(..., ge=0)
    currency: str
    breakdown: List[PriceSegment] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_display(self) -> str:
        return format_cents(self.total_cents, self.currency)
