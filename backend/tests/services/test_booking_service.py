"""
Tests for the booking lifecycle.

The location is in New York with 4 bays. "Now" is Wednesday 10 June 2026
12:00 UTC; most bookings are Monday 15 June 10:00-11:00 local (14:00-15:00 UTC).
"""

from datetime import datetime, timedelta, timezone

import pytest

from baybook.core.enums import BookingStatus, CancellationInitiator, PaymentStatus
from baybook.core.exceptions import (
    AlreadyCancelledException,
    BookingNotFoundException,
    CancellationWindowViolationException,
    CapacityHoldConflictException,
    RefundFailedException,
    ReservationExpiredException,
    SlotUnavailableException,
    ValidationException,
    WrongStatusForOperationException,
)
from baybook.models.booking import Booking, BookingCancellation
from baybook.models.league import LeagueWeek
from baybook.models.payment import Payment
from baybook.monitoring.prometheus_metrics import REGISTRY
from baybook.schemas.capacity import HoldConfig
from baybook.services.capacity_hold_service import CapacityHoldService

from ..factories import BOOKING_DATE, NOW, bays_for, seed_league, seed_location

START_UTC = datetime(2026, 6, 15, 14, 0, tzinfo=timezone.utc)


def _refund_failures(initiator: CancellationInitiator) -> float:
    value = REGISTRY.get_sample_value(
        "baybook_refund_failures_total", {"initiator": initiator.value}
    )
    return value or 0.0


def reserve(service, location, bay, start="10:00", end="11:00", user_id="user-1", **kwargs):
    return service.reserve_booking(
        location.id, bay.id, BOOKING_DATE, start, end, 2, user_id, **kwargs
    )


def confirmed_booking(service, location, bay, intent="pi_real", user_id="user-1"):
    reservation = reserve(service, location, bay, user_id=user_id)
    service.register_payment_intent(reservation.booking_id, intent)
    service.confirm_payment(reservation.booking_id, intent)
    return reservation


def payments_for(db, booking_id):
    return db.query(Payment).filter(Payment.booking_id == booking_id).all()


class TestReserveBooking:
    def test_reservation_holds_the_bay_for_two_minutes(
        self, db, booking_service, location, bays, realtime
    ):
        result = reserve(booking_service, location, bays[0])

        assert result.status == BookingStatus.RESERVED
        assert result.expires_at == NOW + timedelta(minutes=2)
        assert result.start_time == START_UTC
        assert result.end_time == START_UTC + timedelta(hours=1)
        assert result.total_amount_cents == 6000
        assert result.quote.total_cents == 6000

        booking = db.get(Booking, result.booking_id)
        assert booking.status == BookingStatus.RESERVED.value
        (payment,) = payments_for(db, result.booking_id)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.stripe_payment_intent_id.startswith("temp_")
        assert payment.amount_cents == 6000
        realtime.notify_booking_changed.assert_called_once_with(
            location.id, bays[0].id, result.booking_id
        )

    def test_supplied_total_skips_pricing(self, booking_service, location, bays):
        result = reserve(booking_service, location, bays[0], total_amount_cents=4500)
        assert result.total_amount_cents == 4500
        assert result.quote is None

    def test_overlapping_reservation_on_same_bay_is_rejected(
        self, booking_service, location, bays
    ):
        reserve(booking_service, location, bays[0])

        with pytest.raises(SlotUnavailableException):
            reserve(booking_service, location, bays[0], "10:30", "11:30", user_id="user-2")

    def test_other_bay_and_adjacent_window_are_free(self, booking_service, location, bays):
        reserve(booking_service, location, bays[0])

        reserve(booking_service, location, bays[1], user_id="user-2")
        reserve(booking_service, location, bays[0], "11:00", "12:00", user_id="user-3")

    def test_lapsed_reservation_frees_the_slot(self, db, clock, booking_service, location, bays):
        first = reserve(booking_service, location, bays[0])
        clock.advance(minutes=2, seconds=1)

        second = reserve(booking_service, location, bays[0], user_id="user-2")

        assert db.get(Booking, first.booking_id).status == BookingStatus.EXPIRED.value
        assert db.get(Booking, second.booking_id).status == BookingStatus.RESERVED.value

    def test_overnight_window_is_rejected(self, booking_service, location, bays):
        with pytest.raises(ValidationException, match="Overnight bookings are not allowed"):
            reserve(booking_service, location, bays[0], "23:00", "01:00")

    def test_zero_length_window_is_rejected(self, booking_service, location, bays):
        with pytest.raises(ValidationException):
            reserve(booking_service, location, bays[0], "10:00", "10:00")

    def test_missing_details(self, booking_service, location, bays):
        with pytest.raises(ValidationException, match="Missing required booking details"):
            booking_service.reserve_booking(
                location.id, bays[0].id, BOOKING_DATE, "10:00", "11:00", 2, ""
            )

    def test_bay_from_another_location(self, db, booking_service, location):
        other = seed_location(db, bay_count=1)
        foreign_bay = bays_for(db, other)[0]

        with pytest.raises(ValidationException, match="Bay does not belong"):
            reserve(booking_service, location, foreign_bay)

    def test_league_hold_blocks_public_booking(self, db, clock, booking_service, location, bays):
        league = seed_league(db, location, hold_type="all_bays", hold_value=None)
        weeks = db.query(LeagueWeek).filter(LeagueWeek.league_id == league.id).all()
        CapacityHoldService(db, clock).generate_holds_for_league(
            league.id,
            location.id,
            league.start_time,
            league.end_time,
            weeks,
            HoldConfig(hold_type="all_bays"),
        )

        with pytest.raises(CapacityHoldConflictException) as exc_info:
            reserve(booking_service, location, bays[0], "19:00", "20:00")
        assert exc_info.value.details["league_id"] == league.id
        assert "Tuesday Night League" in exc_info.value.message

        # Outside the league window the bay is bookable
        reserve(booking_service, location, bays[0], "10:00", "11:00")


class TestConfirmPayment:
    def test_confirm_marks_booking_and_payment(
        self, db, booking_service, location, bays, notifier
    ):
        reservation = reserve(booking_service, location, bays[0])
        booking_service.register_payment_intent(reservation.booking_id, "pi_real")

        result = booking_service.confirm_payment(reservation.booking_id, "pi_real")

        assert result.newly_confirmed is True
        booking = db.get(Booking, reservation.booking_id)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.expires_at is None
        (payment,) = payments_for(db, reservation.booking_id)
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.stripe_payment_intent_id == "pi_real"
        assert payment.processed_at == NOW
        notifier.send_booking_confirmation.assert_called_once_with(reservation.booking_id)

    def test_redelivered_confirmation_is_a_no_op(
        self, booking_service, location, bays, notifier, realtime
    ):
        reservation = reserve(booking_service, location, bays[0])
        booking_service.confirm_payment(reservation.booking_id)
        realtime.reset_mock()

        again = booking_service.confirm_payment(reservation.booking_id)

        assert again.newly_confirmed is False
        assert again.status == BookingStatus.CONFIRMED
        assert notifier.send_booking_confirmation.call_count == 1
        realtime.notify_booking_changed.assert_not_called()

    def test_payment_after_expiry_is_rejected(
        self, db, clock, booking_service, location, bays, notifier
    ):
        reservation = reserve(booking_service, location, bays[0])
        clock.advance(minutes=2, seconds=1)

        with pytest.raises(ReservationExpiredException):
            booking_service.confirm_payment(reservation.booking_id, "pi_late")

        assert db.get(Booking, reservation.booking_id).status == BookingStatus.EXPIRED.value
        notifier.send_booking_confirmation.assert_not_called()
        # Still expired on retry
        with pytest.raises(ReservationExpiredException):
            booking_service.confirm_payment(reservation.booking_id, "pi_late")

    def test_notification_failure_does_not_undo_confirmation(
        self, db, booking_service, location, bays, notifier
    ):
        notifier.send_booking_confirmation.side_effect = RuntimeError("smtp down")
        reservation = reserve(booking_service, location, bays[0])

        result = booking_service.confirm_payment(reservation.booking_id)

        assert result.newly_confirmed is True
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.CONFIRMED.value

    def test_cannot_confirm_abandoned_reservation(self, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])
        booking_service.cancel_reserved_booking(reservation.booking_id, "user-1")

        with pytest.raises(WrongStatusForOperationException):
            booking_service.confirm_payment(reservation.booking_id)

    def test_unknown_booking(self, booking_service):
        with pytest.raises(BookingNotFoundException):
            booking_service.confirm_payment("missing")


class TestPaymentIntentRegistration:
    def test_register_after_expiry(self, db, clock, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])
        clock.advance(minutes=3)

        with pytest.raises(ReservationExpiredException):
            booking_service.register_payment_intent(reservation.booking_id, "pi_real")
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.EXPIRED.value

    def test_register_on_confirmed_booking(self, booking_service, location, bays):
        reservation = confirmed_booking(booking_service, location, bays[0])

        with pytest.raises(WrongStatusForOperationException):
            booking_service.register_payment_intent(reservation.booking_id, "pi_other")

    def test_expire_if_due(self, clock, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])

        assert booking_service.expire_if_due(reservation.booking_id) is False
        clock.advance(minutes=2, seconds=1)
        assert booking_service.expire_if_due(reservation.booking_id) is True
        assert booking_service.expire_if_due(reservation.booking_id) is False


class TestCustomerCancellation:
    def test_cancel_exactly_24_hours_ahead_refunds(
        self, db, clock, booking_service, location, bays, payment_gateway, notifier
    ):
        reservation = confirmed_booking(booking_service, location, bays[0])
        clock.set(START_UTC - timedelta(hours=24))

        result = booking_service.cancel_booking(reservation.booking_id, "user-1")

        assert result.success is True
        assert result.status == BookingStatus.CANCELLED
        assert result.refund_id == "re_test_123"
        assert result.refund_amount_cents == 6000
        assert result.refund_failed is False
        assert result.message == "Booking cancelled and refund processed"

        args, kwargs = payment_gateway.create_refund.call_args
        assert args == ("pi_real",)
        assert kwargs["amount_cents"] == 6000
        assert kwargs["metadata"]["booking_id"] == reservation.booking_id

        booking = db.get(Booking, reservation.booking_id)
        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.expires_at == START_UTC - timedelta(hours=24)
        (payment,) = payments_for(db, reservation.booking_id)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refund_id == "re_test_123"
        audit = (
            db.query(BookingCancellation)
            .filter(BookingCancellation.booking_id == reservation.booking_id)
            .one()
        )
        assert audit.initiator == CancellationInitiator.CUSTOMER.value
        assert audit.refund_id == "re_test_123"
        assert audit.refund_amount_cents == 6000
        notifier.send_cancellation_notification.assert_called_once_with(
            reservation.booking_id,
            "Customer requested cancellation",
            CancellationInitiator.CUSTOMER,
            6000,
            True,
        )

    def test_cancel_inside_24_hours_is_refused(
        self, db, clock, booking_service, location, bays, payment_gateway
    ):
        reservation = confirmed_booking(booking_service, location, bays[0])
        clock.set(START_UTC - timedelta(hours=23, minutes=59))

        with pytest.raises(CancellationWindowViolationException) as exc_info:
            booking_service.cancel_booking(reservation.booking_id, "user-1")

        assert "within 24 hours" in exc_info.value.message
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.CONFIRMED.value
        payment_gateway.create_refund.assert_not_called()

    @pytest.mark.parametrize(
        "gateway_error",
        [RefundFailedException("pi_real", "declined"), ConnectionError("gateway unreachable")],
        ids=["declined", "unreachable"],
    )
    def test_refund_failure_leaves_booking_cancelled(
        self,
        db,
        booking_service,
        location,
        bays,
        payment_gateway,
        notifier,
        realtime,
        gateway_error,
    ):
        payment_gateway.create_refund.side_effect = gateway_error
        reservation = confirmed_booking(booking_service, location, bays[0])
        realtime.reset_mock()
        before = _refund_failures(CancellationInitiator.CUSTOMER)

        result = booking_service.cancel_booking(reservation.booking_id, "user-1")

        assert result.refund_failed is True
        assert _refund_failures(CancellationInitiator.CUSTOMER) == before + 1
        notifier.send_cancellation_notification.assert_called_once()
        realtime.notify_booking_changed.assert_called_once()
        assert result.refund_id is None
        assert "contact support" in result.message
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.CANCELLED.value
        (payment,) = payments_for(db, reservation.booking_id)
        assert payment.status == PaymentStatus.SUCCEEDED.value

    def test_temporary_intent_is_never_refunded(
        self, booking_service, location, bays, payment_gateway
    ):
        reservation = reserve(booking_service, location, bays[0])
        booking_service.confirm_payment(reservation.booking_id)

        result = booking_service.cancel_booking(reservation.booking_id, "user-1")

        assert result.message == "Booking cancelled"
        payment_gateway.create_refund.assert_not_called()

    def test_cancelled_slot_can_be_booked_again(self, booking_service, location, bays):
        reservation = confirmed_booking(booking_service, location, bays[0])
        booking_service.cancel_booking(reservation.booking_id, "user-1")

        reserve(booking_service, location, bays[0], user_id="user-2")

    def test_other_users_booking_is_not_found(self, booking_service, location, bays):
        reservation = confirmed_booking(booking_service, location, bays[0])

        with pytest.raises(BookingNotFoundException, match="access denied"):
            booking_service.cancel_booking(reservation.booking_id, "user-2")

    def test_double_cancel(self, booking_service, location, bays):
        reservation = confirmed_booking(booking_service, location, bays[0])
        booking_service.cancel_booking(reservation.booking_id, "user-1")

        with pytest.raises(AlreadyCancelledException):
            booking_service.cancel_booking(reservation.booking_id, "user-1")

    def test_reserved_booking_must_use_abandon(self, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])

        with pytest.raises(WrongStatusForOperationException, match="Only confirmed"):
            booking_service.cancel_booking(reservation.booking_id, "user-1")


class TestAbandonReservation:
    def test_abandon_frees_slot_without_refund(
        self, db, booking_service, location, bays, payment_gateway
    ):
        reservation = reserve(booking_service, location, bays[0])

        result = booking_service.cancel_reserved_booking(reservation.booking_id, "user-1")

        assert result.status == BookingStatus.ABANDONED
        assert result.message == "Reservation abandoned successfully"
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.ABANDONED.value
        payment_gateway.create_refund.assert_not_called()
        reserve(booking_service, location, bays[0], user_id="user-2")

    def test_confirmed_booking_cannot_be_abandoned(self, booking_service, location, bays):
        reservation = confirmed_booking(booking_service, location, bays[0])

        with pytest.raises(WrongStatusForOperationException):
            booking_service.cancel_reserved_booking(reservation.booking_id, "user-1")

    def test_wrong_user(self, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])

        with pytest.raises(BookingNotFoundException):
            booking_service.cancel_reserved_booking(reservation.booking_id, "user-2")


class TestEmployeeCancellation:
    def test_staff_cancel_inside_24_hours_refunds(
        self, db, clock, booking_service, location, bays, payment_gateway, notifier
    ):
        reservation = confirmed_booking(booking_service, location, bays[0])
        clock.set(START_UTC - timedelta(hours=1))

        result = booking_service.employee_cancel_booking(
            reservation.booking_id, "emp-1", "Simulator maintenance"
        )

        assert result.message == "Booking cancelled and refund processed by staff"
        assert result.refund_amount_cents == 6000
        payment_gateway.create_refund.assert_called_once()
        audit = (
            db.query(BookingCancellation)
            .filter(BookingCancellation.booking_id == reservation.booking_id)
            .one()
        )
        assert audit.initiator == CancellationInitiator.EMPLOYEE.value
        assert audit.cancelled_by == "emp-1"
        assert audit.reason == "Simulator maintenance"
        assert notifier.send_cancellation_notification.call_args.args[2] == (
            CancellationInitiator.EMPLOYEE
        )

    def test_staff_cancel_reserved_booking_has_nothing_to_refund(
        self, booking_service, location, bays, payment_gateway
    ):
        reservation = reserve(booking_service, location, bays[0])

        result = booking_service.employee_cancel_booking(reservation.booking_id, "emp-1")

        assert result.message == "Booking cancelled by staff (no refund processed)"
        assert result.status == BookingStatus.CANCELLED
        payment_gateway.create_refund.assert_not_called()

    @pytest.mark.parametrize(
        "gateway_error",
        [RefundFailedException("pi_real", "timeout"), RuntimeError("unexpected SDK error")],
        ids=["timeout", "sdk-error"],
    )
    def test_staff_refund_failure_is_reported_not_raised(
        self, db, booking_service, location, bays, payment_gateway, gateway_error
    ):
        payment_gateway.create_refund.side_effect = gateway_error
        reservation = confirmed_booking(booking_service, location, bays[0])

        result = booking_service.employee_cancel_booking(reservation.booking_id, "emp-1")

        assert result.refund_failed is True
        assert result.message == "Booking cancelled by staff (no refund processed)"
        assert db.get(Booking, reservation.booking_id).status == BookingStatus.CANCELLED.value

    def test_staff_cannot_cancel_expired_booking(self, clock, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])
        clock.advance(minutes=5)
        booking_service.expire_stale_reservations()

        with pytest.raises(WrongStatusForOperationException):
            booking_service.employee_cancel_booking(reservation.booking_id, "emp-1")


class TestEmployeeBooking:
    def test_walk_in_is_confirmed_without_payment(self, db, booking_service, location, bays):
        summary = booking_service.create_employee_booking(
            "emp-1", location.id, bays[2].id, BOOKING_DATE, "2:00 PM", "3:30 PM", party_size=4
        )

        booking = db.get(Booking, summary.id)
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.created_by_employee_id == "emp-1"
        assert booking.user_id is None
        assert payments_for(db, summary.id) == []

    def test_walk_in_cannot_double_book(self, booking_service, location, bays):
        reserve(booking_service, location, bays[0])

        with pytest.raises(SlotUnavailableException):
            booking_service.create_employee_booking(
                "emp-1", location.id, bays[0].id, BOOKING_DATE, "10:30", "11:00"
            )


class TestReads:
    def test_day_schedule_hides_lapsed_and_cancelled(
        self, clock, booking_service, location, bays
    ):
        confirmed = confirmed_booking(booking_service, location, bays[0])
        lapsed = reserve(booking_service, location, bays[1], user_id="user-2")
        cancelled = reserve(booking_service, location, bays[2], user_id="user-3")
        booking_service.cancel_reserved_booking(cancelled.booking_id, "user-3")
        clock.advance(minutes=3)
        live = reserve(booking_service, location, bays[3], user_id="user-4")

        schedule = booking_service.get_bookings_for_date(location.id, "2026-06-15")

        ids = {b.id for b in schedule.bookings}
        assert ids == {confirmed.booking_id, live.booking_id}
        assert lapsed.booking_id not in ids
        assert schedule.schedule_date == BOOKING_DATE

    def test_day_schedule_after_time(self, booking_service, location, bays):
        reserve(booking_service, location, bays[0], "10:00", "11:00")
        later = reserve(booking_service, location, bays[0], "15:00", "16:00", user_id="user-2")

        schedule = booking_service.get_bookings_for_date(location.id, BOOKING_DATE, "11:00")

        assert [b.id for b in schedule.bookings] == [later.booking_id]

    def test_user_reserved_booking(self, clock, booking_service, location, bays):
        reservation = reserve(booking_service, location, bays[0])

        found = booking_service.get_user_reserved_booking("user-1")
        assert found is not None and found.id == reservation.booking_id

        clock.advance(minutes=2, seconds=1)
        assert booking_service.get_user_reserved_booking("user-1") is None

    def test_sweep_expires_lapsed_reservations(self, db, clock, booking_service, location, bays):
        first = reserve(booking_service, location, bays[0])
        reserve(booking_service, location, bays[1], user_id="user-2")
        confirmed_booking(booking_service, location, bays[2], user_id="user-3")
        clock.advance(minutes=2, seconds=1)

        assert booking_service.expire_stale_reservations() == 2
        assert db.get(Booking, first.booking_id).status == BookingStatus.EXPIRED.value
        assert booking_service.expire_stale_reservations() == 0
