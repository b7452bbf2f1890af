# backend/baybook/repositories/pricing_rule_repository.py
"""Rate table reads."""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.pricing_rule import PricingRule
from .base_repository import BaseRepository


class PricingRuleRepository(BaseRepository[PricingRule]):
    def __init__(self, db: Session):
        super().__init__(db, PricingRule)

    def get_rules_for_location(self, location_id: str) -> List[PricingRule]:
        stmt = (
            select(PricingRule)
            .where(PricingRule.location_id == location_id)
            .order_by(PricingRule.name, PricingRule.id)
        )
        return list(self.db.execute(stmt).scalars().all())
