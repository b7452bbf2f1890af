# backend/baybook/services/booking_service.py
"""
Booking Service for the bay booking engine.

Drives a booking through its lifecycle:

    reserve -> (pay) -> confirm
    reserve -> expire | abandon | staff cancel
    confirm -> customer cancel (24h rule) | staff cancel

The store's atomic create is the only thing that decides whether a bay is
free; the capacity-hold check before it is an optimistic filter. Reservation
expiry is lazy: every payment-adjacent call re-checks ``expires_at`` against
the injected clock, and the periodic sweep is only housekeeping.

Refunds, notifications and realtime pushes happen after the state change has
committed. A failed refund is logged and reported back to the caller; it
never undoes the cancellation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session
import ulid

from ..core.clock import Clock
from ..core.config import settings
from ..core.enums import BookingEvent, BookingStatus, CancellationInitiator, PaymentStatus
from ..core.exceptions import (
    AlreadyCancelledException,
    BookingNotFoundException,
    CancellationWindowViolationException,
    CapacityHoldConflictException,
    InvalidLocationException,
    ReservationExpiredException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
    WrongStatusForOperationException,
)
from ..core.timezone_utils import (
    get_location_timezone,
    local_to_utc,
    parse_local_date,
    parse_local_time,
)
from ..models.location import Location
from ..models.payment import Payment
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingQuery
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import (
    BookingSummary,
    CancellationResult,
    ConfirmationResult,
    DaySchedule,
    ReservationResult,
)
from ..schemas.pricing import PriceQuote
from .base import BaseService
from .capacity_hold_service import CapacityHoldService
from .notification_service import (
    LoggingNotificationDispatcher,
    LoggingRealtimePublisher,
    NotificationDispatcher,
    RealtimePublisher,
)
from .pricing_service import PricingService
from .side_effects import SideEffectResult, run_side_effect
from .stripe_service import PaymentGateway, StripeService

logger = logging.getLogger(__name__)

OVERNIGHT_MESSAGE = (
    "Overnight bookings are not allowed. Please book within a single day (12am to 11:59pm)."
)
CUSTOMER_CANCEL_REASON = "Customer requested cancellation"
ABANDON_REASON = "Reservation abandoned by customer"
STAFF_CANCEL_REASON = "Cancelled by staff"

LocalDate = Union[str, date]
LocalTime = Union[str, time]


@dataclass(frozen=True)
class BookingWindow:
    """A validated same-day booking window in both local and UTC terms."""

    local_date: date
    start_local: time
    end_local: time
    start_utc: datetime
    end_utc: datetime


@dataclass(frozen=True)
class RefundOutcome:
    refund_id: Optional[str] = None
    amount_cents: int = 0
    failed: bool = False
    attempted: bool = False

    @property
    def refunded(self) -> bool:
        return self.refund_id is not None


class BookingService(BaseService):
    """
    Reservation state machine plus cancellation and refund policy.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        *,
        pricing_service: Optional[PricingService] = None,
        capacity_hold_service: Optional[CapacityHoldService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        notification_dispatcher: Optional[NotificationDispatcher] = None,
        realtime_publisher: Optional[RealtimePublisher] = None,
    ):
        super().__init__(db, clock)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.location_repository = RepositoryFactory.create_location_repository(db)
        self.pricing_service = pricing_service or PricingService(db, self.clock)
        self.capacity_hold_service = capacity_hold_service or CapacityHoldService(db, self.clock)
        self.payment_gateway: PaymentGateway = payment_gateway or StripeService()
        self.notification_dispatcher: NotificationDispatcher = (
            notification_dispatcher or LoggingNotificationDispatcher()
        )
        self.realtime_publisher: RealtimePublisher = (
            realtime_publisher or LoggingRealtimePublisher()
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _require(message: str, **fields: Any) -> None:
        missing = [name for name, value in fields.items() if value in (None, "")]
        if missing:
            raise ValidationException(message, code="MISSING_FIELDS", details={"missing": missing})

    def _get_location(self, location_id: str) -> Location:
        location = self.location_repository.get_by_id(location_id)
        if location is None:
            raise InvalidLocationException(location_id)
        return location

    def _resolve_window(
        self,
        location: Location,
        booking_date: LocalDate,
        start_time: LocalTime,
        end_time: LocalTime,
    ) -> BookingWindow:
        """
        Parse local inputs and convert them to UTC in the venue's timezone.

        Raises:
            ValidationException: bad date/time, overnight or zero-length window
        """
        local_date = parse_local_date(booking_date)
        start_local = parse_local_time(start_time)
        end_local = parse_local_time(end_time)

        if end_local < start_local:
            raise ValidationException(
                OVERNIGHT_MESSAGE,
                code="OVERNIGHT_BOOKING",
                details={"start_time": start_local.isoformat(), "end_time": end_local.isoformat()},
            )
        if end_local == start_local:
            raise ValidationException(
                "Booking end time must be after the start time",
                code="INVALID_TIME_RANGE",
                details={"start_time": start_local.isoformat(), "end_time": end_local.isoformat()},
            )

        tz = get_location_timezone(location)
        return BookingWindow(
            local_date=local_date,
            start_local=start_local,
            end_local=end_local,
            start_utc=local_to_utc(local_date, start_local, tz),
            end_utc=local_to_utc(local_date, end_local, tz),
        )

    def _check_bay(self, location_id: str, bay_id: str) -> None:
        bay = self.location_repository.get_bay(bay_id)
        if bay is None or bay.location_id != location_id:
            raise ValidationException(
                "Bay does not belong to this location",
                code="INVALID_BAY",
                details={"bay_id": bay_id, "location_id": location_id},
            )

    def _check_capacity_holds(self, location_id: str, window: BookingWindow) -> None:
        """Reject windows a league hold has claimed. Optimistic; the insert decides."""
        total_bays = self.location_repository.count_bays(location_id)
        existing = self.repository.count_matching(
            BookingQuery(
                location_id=location_id,
                statuses=BookingStatus.active(),
                overlapping=(window.start_utc, window.end_utc),
                visible_at=self.now(),
            )
        )
        hold = self.capacity_hold_service.check_hold_conflict(
            location_id,
            window.local_date,
            window.start_local,
            window.end_local,
            total_bays,
            existing,
        )
        if hold is not None:
            prometheus_metrics.inc_reservation("hold_conflict")
            raise CapacityHoldConflictException(hold.id, hold.league_id, hold.league_name)

    def _push_booking_change(
        self, booking_id: str, location_id: str, bay_id: str
    ) -> SideEffectResult:
        return run_side_effect(
            "realtime_push",
            self.realtime_publisher.notify_booking_changed,
            location_id,
            bay_id,
            booking_id,
        )

    def _issue_refund(
        self,
        booking_id: str,
        payment: Optional[Payment],
        initiator: CancellationInitiator,
        metadata: Dict[str, str],
    ) -> RefundOutcome:
        """
        Refund a succeeded, really-charged payment.

        Runs after the cancellation committed, so gateway failures are logged
        and counted for manual reconciliation instead of raised.
        """
        if payment is None:
            self.logger.warning(
                f"No successful payment found for booking {booking_id}, cancelling without refund"
            )
            return RefundOutcome()
        if payment.has_temporary_intent(settings.temporary_payment_prefix):
            self.logger.warning(
                f"Skipping refund for booking {booking_id} because a valid "
                "payment_intent_id was not found."
            )
            return RefundOutcome()

        payment_id = payment.id
        intent_id = payment.stripe_payment_intent_id
        amount_cents = int(payment.amount_cents)
        try:
            refund_id = self.payment_gateway.create_refund(
                intent_id,
                amount_cents=amount_cents,
                reason="requested_by_customer",
                metadata=metadata,
                idempotency_key=f"refund:{booking_id}:{intent_id}",
            )
        except Exception as exc:
            # The cancellation has already committed; any gateway error is non-fatal
            self.logger.error(
                "Refund failed for booking %s (payment intent %s); needs manual reconciliation: %s",
                booking_id,
                intent_id,
                exc,
                exc_info=not isinstance(exc, ServiceException),
            )
            prometheus_metrics.inc_refund_failure(initiator.value)
            return RefundOutcome(amount_cents=amount_cents, failed=True, attempted=True)

        self.logger.info(f"Refund created for booking {booking_id}: {refund_id}")
        self._record_refund(booking_id, payment_id, refund_id, amount_cents)
        return RefundOutcome(refund_id=refund_id, amount_cents=amount_cents, attempted=True)

    def _record_refund(
        self, booking_id: str, payment_id: str, refund_id: str, amount_cents: int
    ) -> None:
        """Mark the payment refunded and copy the refund onto the audit row."""
        now = self.now()
        try:
            with self.transaction():
                payment = self.db.get(Payment, payment_id)
                if payment is not None:
                    payment.status = PaymentStatus.REFUNDED.value
                    payment.refund_id = refund_id
                    payment.refund_amount_cents = amount_cents
                    payment.refunded_at = now
                cancellation = self.repository.get_latest_cancellation(booking_id)
                if cancellation is not None:
                    cancellation.refund_id = refund_id
                    cancellation.refund_amount_cents = amount_cents
                self.db.flush()
        except ServiceException as exc:
            # The gateway already refunded; only our bookkeeping is behind
            self.logger.error(
                "Refund %s issued for booking %s but could not be recorded: %s",
                refund_id,
                booking_id,
                exc.message,
            )

    # ------------------------------------------------------------------ #
    # Reservation
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("reserve_booking")
    def reserve_booking(
        self,
        location_id: str,
        bay_id: str,
        booking_date: LocalDate,
        start_time: LocalTime,
        end_time: LocalTime,
        party_size: int,
        user_id: str,
        total_amount_cents: Optional[int] = None,
    ) -> ReservationResult:
        """
        Hold a bay for a customer while they pay.

        The booking is created ``reserved`` with a short expiry and a pending
        payment carrying a temporary intent id. ``total_amount_cents`` lets the
        caller supply an already-discounted total; otherwise the window is
        priced from the location's rate table.

        Raises:
            ValidationException: missing fields, bad times, overnight window
            InvalidLocationException: unknown location
            NoPricingRuleException: the rate table cannot price the window
            CapacityHoldConflictException: a league hold claims the window
            SlotUnavailableException: the bay is already taken
        """
        self._require(
            "Missing required booking details",
            location_id=location_id,
            bay_id=bay_id,
            date=booking_date,
            start_time=start_time,
            end_time=end_time,
            party_size=party_size,
            user_id=user_id,
        )
        if int(party_size) < 1:
            raise ValidationException(
                "Party size must be at least 1",
                code="INVALID_PARTY_SIZE",
                details={"party_size": party_size},
            )
        if total_amount_cents is not None and int(total_amount_cents) < 0:
            raise ValidationException(
                "Total amount cannot be negative",
                code="INVALID_AMOUNT",
                details={"total_amount_cents": total_amount_cents},
            )

        location = self._get_location(location_id)
        self._check_bay(location_id, bay_id)
        window = self._resolve_window(location, booking_date, start_time, end_time)

        quote: Optional[PriceQuote] = None
        if total_amount_cents is None:
            quote = self.pricing_service.calculate_price(
                location_id, window.start_utc, window.end_utc
            )
            amount_cents = quote.total_cents
        else:
            amount_cents = int(total_amount_cents)

        self._check_capacity_holds(location_id, window)

        now = self.now()
        expires_at = now + timedelta(minutes=settings.reservation_hold_minutes)
        temp_payment_ref = f"{settings.temporary_payment_prefix}{ulid.ULID()}"

        try:
            with self.transaction():
                booking = self.repository.create_booking_atomic(
                    location_id=location_id,
                    bay_id=bay_id,
                    user_id=user_id,
                    start_time=window.start_utc,
                    end_time=window.end_utc,
                    party_size=int(party_size),
                    amount_cents=amount_cents,
                    payment_ref=temp_payment_ref,
                    currency=settings.currency,
                    status=BookingStatus.RESERVED,
                    expires_at=expires_at,
                    now=now,
                )
                booking_id = booking.id
        except SlotUnavailableException:
            prometheus_metrics.inc_reservation("slot_unavailable")
            self.logger.info(
                "Bay %s unavailable for %s-%s",
                bay_id,
                window.start_utc.isoformat(),
                window.end_utc.isoformat(),
            )
            raise

        prometheus_metrics.inc_reservation("reserved")
        self.logger.info(
            f"Successfully reserved booking {booking_id} for bay {bay_id}, "
            f"expires at {expires_at.isoformat()}"
        )
        self._push_booking_change(booking_id, location_id, bay_id)

        return ReservationResult(
            booking_id=booking_id,
            expires_at=expires_at,
            total_amount_cents=amount_cents,
            start_time=window.start_utc,
            end_time=window.end_utc,
            quote=quote,
        )

    @BaseService.measure_operation("create_employee_booking")
    def create_employee_booking(
        self,
        employee_id: str,
        location_id: str,
        bay_id: str,
        booking_date: LocalDate,
        start_time: LocalTime,
        end_time: LocalTime,
        party_size: int = 1,
        total_amount_cents: int = 0,
        user_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BookingSummary:
        """
        Staff walk-in booking: confirmed immediately, no payment record.

        Staff bookings go through the same atomic insert, so they cannot
        double-book a bay. League holds are not consulted.
        """
        self._require(
            "Missing required booking details",
            employee_id=employee_id,
            location_id=location_id,
            bay_id=bay_id,
            date=booking_date,
            start_time=start_time,
            end_time=end_time,
        )
        location = self._get_location(location_id)
        self._check_bay(location_id, bay_id)
        window = self._resolve_window(location, booking_date, start_time, end_time)

        with self.transaction():
            booking = self.repository.create_booking_atomic(
                location_id=location_id,
                bay_id=bay_id,
                user_id=user_id,
                start_time=window.start_utc,
                end_time=window.end_utc,
                party_size=max(1, int(party_size or 1)),
                amount_cents=max(0, int(total_amount_cents or 0)),
                payment_ref=None,
                currency=settings.currency,
                status=BookingStatus.CONFIRMED,
                expires_at=None,
                now=self.now(),
                created_by_employee_id=employee_id,
                notes=notes,
            )
            summary = BookingSummary.model_validate(booking, from_attributes=True)

        self.logger.info(
            "Employee %s created booking %s on bay %s", employee_id, summary.id, bay_id
        )
        self._push_booking_change(summary.id, location_id, bay_id)
        return summary

    # ------------------------------------------------------------------ #
    # Payment-adjacent transitions
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("expire_if_due")
    def expire_if_due(self, booking_id: str) -> bool:
        """
        Move a lapsed reservation to expired.

        Returns:
            True if this call expired the booking
        """
        now = self.now()
        with self.transaction():
            booking = self.repository.get_for_update(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id, message="Booking not found")
            if not booking.is_reservation_expired(now):
                return False
            booking.status = BookingStatus.EXPIRED.value
            booking.expires_at = None
            self.db.flush()

        prometheus_metrics.inc_reservations_expired("lazy")
        self.logger.info(f"Reservation {booking_id} expired before payment")
        return True

    @BaseService.measure_operation("register_payment_intent")
    def register_payment_intent(self, booking_id: str, payment_intent_id: str) -> Payment:
        """
        Attach the real gateway intent to a reservation's pending payment.

        Raises:
            ReservationExpiredException: the hold window has passed
            WrongStatusForOperationException: the booking is not reserved
        """
        self._require(
            "Booking ID and payment intent ID are required",
            booking_id=booking_id,
            payment_intent_id=payment_intent_id,
        )
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id, message="Booking not found")
        if booking.status == BookingStatus.EXPIRED.value:
            raise ReservationExpiredException(booking_id)
        if booking.status != BookingStatus.RESERVED.value:
            raise WrongStatusForOperationException(
                booking_id, booking.status, "Booking is not available for payment."
            )
        if self.expire_if_due(booking_id):
            raise ReservationExpiredException(booking_id)

        with self.transaction():
            payment = self.repository.get_latest_payment(booking_id, PaymentStatus.PENDING)
            if payment is None:
                payment = Payment(
                    booking_id=booking_id,
                    amount_cents=booking.total_amount_cents,
                    currency=settings.currency,
                    status=PaymentStatus.PENDING.value,
                    stripe_payment_intent_id=payment_intent_id,
                )
                self.db.add(payment)
            payment.stripe_payment_intent_id = payment_intent_id
            self.db.flush()
        return payment

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(
        self, booking_id: str, payment_intent_id: Optional[str] = None
    ) -> ConfirmationResult:
        """
        Payment gateway callback: reserved -> confirmed.

        Re-delivery of the same confirmation is a no-op for both state and
        side effects; the confirmation notice and realtime push go out once
        per booking.

        Raises:
            BookingNotFoundException: unknown booking
            ReservationExpiredException: payment arrived after the hold lapsed
            WrongStatusForOperationException: booking was cancelled/abandoned
        """
        now = self.now()
        expired_now = False
        newly_confirmed = False
        first_delivery = False

        with self.transaction():
            booking = self.repository.get_for_update(booking_id)
            if booking is None:
                raise BookingNotFoundException(booking_id, message="Booking not found")

            if booking.status == BookingStatus.RESERVED.value:
                if booking.is_reservation_expired(now):
                    booking.status = BookingStatus.EXPIRED.value
                    booking.expires_at = None
                    expired_now = True
                else:
                    booking.status = BookingStatus.CONFIRMED.value
                    booking.expires_at = None
                    payment = None
                    if payment_intent_id:
                        payment = self.repository.get_payment_by_intent(payment_intent_id)
                        if payment is not None and payment.booking_id != booking_id:
                            payment = None
                    if payment is None:
                        payment = self.repository.get_latest_payment(
                            booking_id, PaymentStatus.PENDING
                        )
                    if payment is not None:
                        payment.status = PaymentStatus.SUCCEEDED.value
                        payment.processed_at = now
                        if payment_intent_id:
                            payment.stripe_payment_intent_id = payment_intent_id
                    newly_confirmed = True
            elif booking.status == BookingStatus.EXPIRED.value:
                raise ReservationExpiredException(booking_id)
            elif booking.status != BookingStatus.CONFIRMED.value:
                raise WrongStatusForOperationException(
                    booking_id,
                    booking.status,
                    f"Booking cannot be confirmed from status {booking.status}",
                )

            if not expired_now:
                first_delivery = self.repository.record_event_once(
                    booking_id, BookingEvent.CONFIRMED.value, now
                )
            location_id, bay_id = booking.location_id, booking.bay_id
            self.db.flush()

        if expired_now:
            prometheus_metrics.inc_reservations_expired("lazy")
            self.logger.info(f"Rejected payment for expired reservation {booking_id}")
            raise ReservationExpiredException(booking_id)

        if first_delivery:
            run_side_effect(
                "booking_confirmation",
                self.notification_dispatcher.send_booking_confirmation,
                booking_id,
            )
            self._push_booking_change(booking_id, location_id, bay_id)
        else:
            self.logger.info(
                f"Duplicate confirmation for booking {booking_id}; side effects skipped"
            )

        if newly_confirmed:
            self.logger.info(f"Booking {booking_id} confirmed")
        return ConfirmationResult(
            booking_id=booking_id,
            status=BookingStatus.CONFIRMED,
            newly_confirmed=newly_confirmed,
        )

    @BaseService.measure_operation("expire_stale_reservations")
    def expire_stale_reservations(self) -> int:
        """Housekeeping sweep of lapsed reservations. Correctness never depends on it."""
        now = self.now()
        with self.transaction():
            expired_ids = self.repository.expire_stale_reservations(now)
        prometheus_metrics.inc_reservations_expired("sweep", len(expired_ids))
        if expired_ids:
            self.logger.info(f"Expired {len(expired_ids)} stale reservation(s)")
        return len(expired_ids)

    # ------------------------------------------------------------------ #
    # Cancellation
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, user_id: str) -> CancellationResult:
        """
        Customer cancels a confirmed booking at least 24 hours ahead.

        The slot is freed immediately (status cancelled, expires_at now). The
        refund is attempted after the cancellation commits.

        Raises:
            BookingNotFoundException: unknown booking or not the user's
            AlreadyCancelledException: already cancelled
            WrongStatusForOperationException: booking is not confirmed
            CancellationWindowViolationException: less than 24h before start
        """
        self._require(
            "Booking ID and User ID are required", booking_id=booking_id, user_id=user_id
        )
        now = self.now()
        window = timedelta(hours=settings.customer_cancellation_window_hours)

        with self.transaction():
            booking = self.repository.get_for_user(booking_id, user_id)
            if booking is None:
                raise BookingNotFoundException(booking_id)
            if booking.status == BookingStatus.CANCELLED.value:
                raise AlreadyCancelledException(booking_id)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise WrongStatusForOperationException(
                    booking_id, booking.status, "Only confirmed bookings can be cancelled"
                )

            time_until_start = booking.start_time - now
            if time_until_start < window:
                raise CancellationWindowViolationException(
                    settings.customer_cancellation_window_hours,
                    time_until_start.total_seconds() / 3600,
                )

            payment = self.repository.get_latest_payment(booking_id, PaymentStatus.SUCCEEDED)
            booking.status = BookingStatus.CANCELLED.value
            booking.expires_at = now
            self.repository.add_cancellation(
                booking_id=booking_id,
                cancelled_by=user_id,
                initiator=CancellationInitiator.CUSTOMER,
                reason=CUSTOMER_CANCEL_REASON,
                refund_amount_cents=0,
                cancelled_at=now,
            )
            location_id, bay_id = booking.location_id, booking.bay_id
            self.db.flush()

        prometheus_metrics.inc_cancellation(CancellationInitiator.CUSTOMER.value)
        self.logger.info(f"Booking {booking_id} cancelled and time slot freed for new reservations")

        refund = self._issue_refund(
            booking_id,
            payment,
            CancellationInitiator.CUSTOMER,
            metadata={
                "booking_id": booking_id,
                "user_id": user_id,
                "cancelled_at": now.isoformat(),
            },
        )

        run_side_effect(
            "cancellation_notification",
            self.notification_dispatcher.send_cancellation_notification,
            booking_id,
            CUSTOMER_CANCEL_REASON,
            CancellationInitiator.CUSTOMER,
            refund.amount_cents if refund.attempted else None,
            refund.refunded,
        )
        self._push_booking_change(booking_id, location_id, bay_id)

        if refund.failed:
            message = (
                "Booking cancelled, but the refund could not be processed. Please contact support."
            )
        elif refund.refunded:
            message = "Booking cancelled and refund processed"
        else:
            message = "Booking cancelled"

        return CancellationResult(
            booking_id=booking_id,
            location_id=location_id,
            bay_id=bay_id,
            status=BookingStatus.CANCELLED,
            refund_id=refund.refund_id,
            refund_amount_cents=refund.amount_cents if refund.refunded else 0,
            refund_failed=refund.failed,
            message=message,
        )

    @BaseService.measure_operation("cancel_reserved_booking")
    def cancel_reserved_booking(self, booking_id: str, user_id: str) -> CancellationResult:
        """
        Customer drops an unpaid reservation. Nothing was charged, so nothing
        is refunded.
        """
        self._require(
            "Booking ID and User ID are required", booking_id=booking_id, user_id=user_id
        )
        now = self.now()

        with self.transaction():
            booking = self.repository.get_for_user(booking_id, user_id)
            if booking is None:
                raise BookingNotFoundException(
                    booking_id, message="Reserved booking not found or access denied"
                )
            if booking.status != BookingStatus.RESERVED.value:
                raise WrongStatusForOperationException(
                    booking_id,
                    booking.status,
                    "Only reserved bookings can be cancelled through this endpoint",
                )

            booking.status = BookingStatus.ABANDONED.value
            booking.expires_at = now
            self.repository.add_cancellation(
                booking_id=booking_id,
                cancelled_by=user_id,
                initiator=CancellationInitiator.CUSTOMER,
                reason=ABANDON_REASON,
                refund_amount_cents=0,
                cancelled_at=now,
            )
            location_id, bay_id = booking.location_id, booking.bay_id
            self.db.flush()

        self.logger.info(
            f"Reserved booking {booking_id} abandoned and time slot freed for new reservations"
        )
        self._push_booking_change(booking_id, location_id, bay_id)

        return CancellationResult(
            booking_id=booking_id,
            location_id=location_id,
            bay_id=bay_id,
            status=BookingStatus.ABANDONED,
            message="Reservation abandoned successfully",
        )

    @BaseService.measure_operation("employee_cancel_booking")
    def employee_cancel_booking(
        self, booking_id: str, employee_id: str, reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Staff cancellation. No 24-hour rule.

        Refunds only a succeeded payment whose intent is real (not a
        temporary reservation id). A failed refund leaves the booking
        cancelled and is logged for reconciliation.
        """
        self._require(
            "Booking ID and Employee ID are required",
            booking_id=booking_id,
            employee_id=employee_id,
        )
        cancel_reason = reason or STAFF_CANCEL_REASON
        now = self.now()

        with self.transaction():
            booking = self.repository.cancel_booking_atomic(
                booking_id, employee_id, cancel_reason, now
            )
            payment = self.repository.get_latest_payment(booking_id, PaymentStatus.SUCCEEDED)
            location_id, bay_id = booking.location_id, booking.bay_id

        prometheus_metrics.inc_cancellation(CancellationInitiator.EMPLOYEE.value)
        self.logger.info(f"Booking {booking_id} cancelled by employee {employee_id}")

        refund = self._issue_refund(
            booking_id,
            payment,
            CancellationInitiator.EMPLOYEE,
            metadata={
                "booking_id": booking_id,
                "cancelled_by_employee": employee_id,
                "cancelled_at": now.isoformat(),
            },
        )

        run_side_effect(
            "cancellation_notification",
            self.notification_dispatcher.send_cancellation_notification,
            booking_id,
            cancel_reason,
            CancellationInitiator.EMPLOYEE,
            refund.amount_cents if refund.attempted else None,
            refund.refunded,
        )
        self._push_booking_change(booking_id, location_id, bay_id)

        if refund.refunded:
            message = "Booking cancelled and refund processed by staff"
        else:
            message = "Booking cancelled by staff (no refund processed)"

        return CancellationResult(
            booking_id=booking_id,
            location_id=location_id,
            bay_id=bay_id,
            status=BookingStatus.CANCELLED,
            refund_id=refund.refund_id,
            refund_amount_cents=refund.amount_cents if refund.refunded else 0,
            refund_failed=refund.failed,
            message=message,
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("get_bookings_for_date")
    def get_bookings_for_date(
        self,
        location_id: str,
        booking_date: LocalDate,
        after_time: Optional[LocalTime] = None,
    ) -> DaySchedule:
        """
        Bookings that start on a local date and still occupy their bay.

        ``after_time`` drops bookings that ended at or before that local time
        (for "today" views). Lapsed reservations are hidden even if the sweep
        has not reached them yet.
        """
        self._require(
            "locationId and date are required parameters",
            location_id=location_id,
            date=booking_date,
        )
        location = self._get_location(location_id)
        tz = get_location_timezone(location)
        local_date = parse_local_date(booking_date)

        day_start = local_to_utc(local_date, time(0, 0), tz)
        next_day_start = local_to_utc(local_date + timedelta(days=1), time(0, 0), tz)

        bookings = self.repository.find(
            BookingQuery(
                location_id=location_id,
                statuses=BookingStatus.active(),
                starts_at_or_after=day_start,
                starts_before=next_day_start,
                visible_at=self.now(),
            )
        )
        if after_time is not None:
            cutoff = local_to_utc(local_date, parse_local_time(after_time), tz)
            bookings = [booking for booking in bookings if booking.end_time > cutoff]

        return DaySchedule(
            location_id=location_id,
            schedule_date=local_date,
            bookings=[
                BookingSummary.model_validate(booking, from_attributes=True)
                for booking in bookings
            ],
        )

    @BaseService.measure_operation("get_user_reserved_booking")
    def get_user_reserved_booking(self, user_id: str) -> Optional[BookingSummary]:
        """The user's most recent reservation that is still inside its hold window."""
        self._require("User ID is required", user_id=user_id)
        now = self.now()
        reservations = self.repository.find(
            BookingQuery(
                user_id=user_id,
                statuses=(BookingStatus.RESERVED,),
                visible_at=now,
            )
        )
        live = [b for b in reservations if b.expires_at is not None and b.expires_at > now]
        if not live:
            return None
        latest = max(live, key=lambda b: (b.created_at or now, b.id))
        return BookingSummary.model_validate(latest, from_attributes=True)

