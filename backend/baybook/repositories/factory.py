# backend/baybook/repositories/factory.py
"""
Repository Factory for the bay booking engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .capacity_hold_repository import CapacityHoldRepository
    from .league_repository import LeagueRepository
    from .location_repository import LocationRepository
    from .pricing_rule_repository import PricingRuleRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_location_repository(db: Session) -> "LocationRepository":
        from .location_repository import LocationRepository

        return LocationRepository(db)

    @staticmethod
    def create_pricing_rule_repository(db: Session) -> "PricingRuleRepository":
        from .pricing_rule_repository import PricingRuleRepository

        return PricingRuleRepository(db)

    @staticmethod
    def create_capacity_hold_repository(db: Session) -> "CapacityHoldRepository":
        from .capacity_hold_repository import CapacityHoldRepository

        return CapacityHoldRepository(db)

    @staticmethod
    def create_league_repository(db: Session) -> "LeagueRepository":
        from .league_repository import LeagueRepository

        return LeagueRepository(db)
