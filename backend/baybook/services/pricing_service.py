# backend/baybook/services/pricing_service.py
"""
Pricing Service for the bay booking engine.

Walks a booking window in fixed increments, picks the named rate for each
increment from the venue's local hour, and coalesces runs of the same rate
into breakdown segments.

All amounts are integer cents. Each increment costs ``hourly_rate / 4`` for
15-minute increments; the exact decimal is kept while a segment accumulates
and rounded half-up once per segment, and the total is the sum of the
rounded segments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Dict, List, Optional, Sequence

import pytz
from sqlalchemy.orm import Session

from ..core.clock import Clock, ensure_utc
from ..core.config import settings
from ..core.exceptions import InvalidLocationException, NoPricingRuleException, ValidationException
from ..core.timezone_utils import get_location_timezone, utc_to_local
from ..models.pricing_rule import PricingRule
from ..repositories.factory import RepositoryFactory
from ..schemas.pricing import PriceQuote, PriceSegment
from .base import BaseService

logger = logging.getLogger(__name__)


def _round_to_int(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def rate_name_for_local_hour(local_hour: int) -> str:
    """
    Standard Rate from the standard start hour until the off-peak start hour
    (9:00am to 1:59am by default), Off-Peak Rate otherwise.
    """
    if local_hour >= settings.standard_rate_start_hour or (
        local_hour < settings.off_peak_rate_start_hour
    ):
        return settings.standard_rate_name
    return settings.off_peak_rate_name


@dataclass
class _OpenSegment:
    rate_name: str
    start: datetime
    amount: Decimal


def build_price_quote(
    rules: Sequence[PricingRule],
    tz: pytz.BaseTzInfo,
    start_utc: datetime,
    end_utc: datetime,
    *,
    location_id: str,
) -> PriceQuote:
    """
    Price ``[start_utc, end_utc)`` against a location's rate table.

    A trailing partial increment is charged as a full increment.

    Raises:
        ValidationException: start is not before end
        NoPricingRuleException: the table is empty or lacks a rate the window needs
    """
    start_utc = ensure_utc(start_utc)
    end_utc = ensure_utc(end_utc)
    if start_utc >= end_utc:
        raise ValidationException(
            "Invalid startTime or endTime",
            code="INVALID_TIME_RANGE",
            details={"start_time": start_utc.isoformat(), "end_time": end_utc.isoformat()},
        )
    if not rules:
        raise NoPricingRuleException(location_id)

    rates: Dict[str, int] = {}
    for rule in rules:
        rates.setdefault(rule.name, int(rule.hourly_rate_cents))

    increment = timedelta(minutes=settings.pricing_increment_minutes)
    increments_per_hour = Decimal(60) / Decimal(settings.pricing_increment_minutes)

    segments: List[PriceSegment] = []
    current: Optional[_OpenSegment] = None
    cursor = start_utc

    while cursor < end_utc:
        local_hour = utc_to_local(cursor, tz).hour
        rate_name = rate_name_for_local_hour(local_hour)
        hourly_rate = rates.get(rate_name)
        if hourly_rate is None:
            raise NoPricingRuleException(
                location_id,
                message=(
                    f"No pricing rule found for {cursor.isoformat()} (local hour: {local_hour})"
                ),
                rate_name=rate_name,
                local_hour=local_hour,
            )

        slot_price = Decimal(hourly_rate) / increments_per_hour
        if current is None or current.rate_name != rate_name:
            if current is not None:
                segments.append(
                    PriceSegment(
                        rate_name=current.rate_name,
                        start=current.start,
                        end=cursor,
                        amount_cents=_round_to_int(current.amount),
                    )
                )
            current = _OpenSegment(rate_name=rate_name, start=cursor, amount=Decimal(0))
        current.amount += slot_price
        cursor += increment

    # The last segment always ends at the requested end, not the increment edge
    if current is not None:
        segments.append(
            PriceSegment(
                rate_name=current.rate_name,
                start=current.start,
                end=end_utc,
                amount_cents=_round_to_int(current.amount),
            )
        )

    return PriceQuote(
        total_cents=sum(segment.amount_cents for segment in segments),
        currency=settings.currency,
        breakdown=segments,
    )


class PricingService(BaseService):
    """Rate table reads and price quotes for a location."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        super().__init__(db, clock)
        self.location_repository = RepositoryFactory.create_location_repository(db)
        self.pricing_rule_repository = RepositoryFactory.create_pricing_rule_repository(db)

    @BaseService.measure_operation("get_pricing_rules")
    def get_pricing_rules(self, location_id: str) -> List[PricingRule]:
        if not location_id:
            raise ValidationException("Location ID is required", code="MISSING_LOCATION")
        return self.pricing_rule_repository.get_rules_for_location(location_id)

    @BaseService.measure_operation("calculate_price")
    def calculate_price(
        self, location_id: str, start_utc: datetime, end_utc: datetime
    ) -> PriceQuote:
        """
        Quote ``[start_utc, end_utc)`` at a location.

        Raises:
            ValidationException: missing arguments or start not before end
            InvalidLocationException: unknown location
            NoPricingRuleException: no usable rate for some increment
        """
        if not location_id or start_utc is None or end_utc is None:
            raise ValidationException(
                "locationId, startTime, and endTime are required", code="MISSING_FIELDS"
            )

        location = self.location_repository.get_by_id(location_id)
        if location is None:
            raise InvalidLocationException(location_id)

        rules = self.pricing_rule_repository.get_rules_for_location(location_id)
        quote = build_price_quote(
            rules,
            get_location_timezone(location),
            start_utc,
            end_utc,
            location_id=location_id,
        )
        self.logger.debug(
            "Priced location %s %s-%s at %s cents in %d segment(s)",
            location_id,
            start_utc.isoformat(),
            end_utc.isoformat(),
            quote.total_cents,
            len(quote.breakdown),
        )
        return quote
