"""
Database models for the bay booking engine.

- Venues and bays
- Bookings, payments and cancellation audit
- Pricing rules
- League programs and their capacity holds
"""

from .booking import Booking, BookingCancellation, BookingEventDelivery
from .capacity_hold import CapacityHold
from .league import League, LeagueAttendance, LeaguePlayer, LeagueWeek
from .location import Bay, Location
from .payment import Payment
from .pricing_rule import PricingRule

__all__ = [
    "Bay",
    "Booking",
    "BookingCancellation",
    "BookingEventDelivery",
    "CapacityHold",
    "League",
    "LeagueAttendance",
    "LeaguePlayer",
    "LeagueWeek",
    "Location",
    "Payment",
    "PricingRule",
]
