# backend/baybook/services/notification_service.py
"""
Outbound notification collaborators.

Email rendering and realtime delivery live outside this package. The
booking service talks to them through the two small interfaces below; the
default implementations only log, which is what tests and local runs use.
"""

import logging
from typing import Optional, Protocol

from ..core.enums import CancellationInitiator

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def send_booking_confirmation(self, booking_id: str) -> None:
        ...

    def send_cancellation_notification(
        self,
        booking_id: str,
        reason: str,
        initiator: CancellationInitiator,
        refunded_amount_cents: Optional[int],
        refunded: bool,
    ) -> None:
        ...


class RealtimePublisher(Protocol):
    def notify_booking_changed(self, location_id: str, bay_id: str, booking_id: str) -> None:
        ...


class LoggingNotificationDispatcher:
    """Dispatcher that records what would have been sent."""

    def send_booking_confirmation(self, booking_id: str) -> None:
        logger.info("Booking confirmation queued for booking %s", booking_id)

    def send_cancellation_notification(
        self,
        booking_id: str,
        reason: str,
        initiator: CancellationInitiator,
        refunded_amount_cents: Optional[int],
        refunded: bool,
    ) -> None:
        logger.info(
            "Cancellation notice queued for booking %s (initiator=%s, refunded=%s, amount=%s): %s",
            booking_id,
            CancellationInitiator(initiator).value,
            refunded,
            refunded_amount_cents,
            reason,
        )


class LoggingRealtimePublisher:
    def notify_booking_changed(self, location_id: str, bay_id: str, booking_id: str) -> None:
        logger.debug(
            "Booking change broadcast location=%s bay=%s booking=%s",
            location_id,
            bay_id,
            booking_id,
        )
