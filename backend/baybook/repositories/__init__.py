"""
Repository layer for the bay booking engine.

Repositories encapsulate data access. Services own transactions and call
repositories created through :class:`RepositoryFactory`.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingQuery, BookingRepository
from .capacity_hold_repository import CapacityHoldRepository, HoldQuery
from .factory import RepositoryFactory
from .league_repository import LeagueRepository
from .location_repository import LocationRepository
from .pricing_rule_repository import PricingRuleRepository

__all__ = [
    "BaseRepository",
    "BookingQuery",
    "BookingRepository",
    "CapacityHoldRepository",
    "HoldQuery",
    "LeagueRepository",
    "LocationRepository",
    "PricingRuleRepository",
    "RepositoryFactory",
]
