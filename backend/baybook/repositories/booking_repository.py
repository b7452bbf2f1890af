# backend/baybook/repositories/booking_repository.py
"""
Booking Repository for the bay booking engine.

Owns every booking read and the store-level "atomic" writes:

- create_booking_atomic: lock the bay, reject overlaps, insert booking + payment
- cancel_booking_atomic: staff cancellation with audit entry
- expire_stale_reservations: bulk reserved -> expired

The atomic writes flush inside the caller's transaction; the service commits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
import ulid

from ..core.enums import BookingStatus, CancellationInitiator, PaymentStatus
from ..core.exceptions import (
    AlreadyCancelledException,
    BookingNotFoundException,
    RepositoryException,
    SlotUnavailableException,
    WrongStatusForOperationException,
)
from ..database.session_utils import supports_row_locks
from ..models.booking import Booking, BookingCancellation, BookingEventDelivery
from ..models.location import Bay
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingQuery:
    """
    Explicit filter set for booking reads.

    Every field is optional; unset fields do not filter. ``visible_at`` hides
    reservations whose hold window had passed at that instant.
    """

    location_id: Optional[str] = None
    bay_id: Optional[str] = None
    user_id: Optional[str] = None
    statuses: Optional[Sequence[BookingStatus]] = None
    starts_at_or_after: Optional[datetime] = None
    starts_before: Optional[datetime] = None
    overlapping: Optional[tuple[datetime, datetime]] = None
    visible_at: Optional[datetime] = None
    limit: Optional[int] = None


class BookingRepository(BaseRepository[Booking]):
    """Data access for bookings, their payments and cancellation audit rows."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    # Reads

    def _conditions(self, query: BookingQuery) -> List[Any]:
        conditions: List[Any] = []
        if query.location_id is not None:
            conditions.append(Booking.location_id == query.location_id)
        if query.bay_id is not None:
            conditions.append(Booking.bay_id == query.bay_id)
        if query.user_id is not None:
            conditions.append(Booking.user_id == query.user_id)
        if query.statuses:
            conditions.append(Booking.status.in_([s.value for s in query.statuses]))
        if query.starts_at_or_after is not None:
            conditions.append(Booking.start_time >= query.starts_at_or_after)
        if query.starts_before is not None:
            conditions.append(Booking.start_time < query.starts_before)
        if query.overlapping is not None:
            window_start, window_end = query.overlapping
            conditions.append(Booking.start_time < window_end)
            conditions.append(Booking.end_time > window_start)
        if query.visible_at is not None:
            conditions.append(
                or_(
                    Booking.status != BookingStatus.RESERVED.value,
                    Booking.expires_at.is_(None),
                    Booking.expires_at >= query.visible_at,
                )
            )
        return conditions

    def _build_select(self, query: BookingQuery):
        stmt = select(Booking).options(selectinload(Booking.payments))
        conditions = self._conditions(query)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(Booking.start_time, Booking.id)
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        return stmt

    def find(self, query: BookingQuery) -> List[Booking]:
        try:
            return list(self.db.execute(self._build_select(query)).scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding bookings: {str(e)}")
            raise RepositoryException(f"Failed to find bookings: {str(e)}")

    def count_matching(self, query: BookingQuery) -> int:
        """Number of bookings the query matches; ``limit`` is ignored."""
        conditions = self._conditions(query)
        stmt = select(func.count(Booking.id))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        try:
            return int(self.db.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def get_for_user(self, booking_id: str, user_id: str) -> Optional[Booking]:
        """Booking by id only if it belongs to the user."""
        return self.find_one_by(id=booking_id, user_id=user_id)

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        stmt = select(Booking).where(Booking.id == booking_id)
        if supports_row_locks(self.db):
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def get_latest_payment(
        self, booking_id: str, status: Optional[PaymentStatus] = None
    ) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.booking_id == booking_id)
        if status is not None:
            stmt = stmt.where(Payment.status == status.value)
        stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
        return self.db.execute(stmt).scalars().first()

    def get_payment_by_intent(self, payment_intent_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.stripe_payment_intent_id == payment_intent_id)
        return self.db.execute(stmt).scalars().first()

    # Atomic writes

    def _lock_bay(self, bay_id: str) -> Optional[Bay]:
        """
        Serialize writers on one bay for the rest of the transaction.

        SQLite has no row locks; there the transaction began with
        BEGIN IMMEDIATE and already holds the database write lock.
        """
        stmt = select(Bay).where(Bay.id == bay_id)
        if supports_row_locks(self.db):
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def create_booking_atomic(
        self,
        *,
        location_id: str,
        bay_id: str,
        user_id: Optional[str],
        start_time: datetime,
        end_time: datetime,
        party_size: int,
        amount_cents: int,
        payment_ref: Optional[str],
        currency: str,
        status: BookingStatus,
        expires_at: Optional[datetime],
        now: datetime,
        created_by_employee_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Insert a booking (and its pending payment) unless the bay is taken.

        Overlap is checked against confirmed bookings and unexpired
        reservations. Reservations on the same bay whose hold has lapsed are
        marked expired here so they stop occupying the slot.

        Raises:
            SlotUnavailableException: If an active booking overlaps [start, end)
        """
        if self._lock_bay(bay_id) is None:
            raise RepositoryException(f"Bay {bay_id} does not exist")

        overlapping = self.find(
            BookingQuery(
                bay_id=bay_id,
                statuses=BookingStatus.active(),
                overlapping=(start_time, end_time),
            )
        )
        for existing in overlapping:
            if existing.is_reservation_expired(now):
                existing.status = BookingStatus.EXPIRED.value
                existing.expires_at = None
                self.logger.info(
                    "Expired stale reservation %s while booking bay %s", existing.id, bay_id
                )
                continue
            raise SlotUnavailableException(details={"conflicting_booking_id": existing.id})

        booking = Booking(
            location_id=location_id,
            bay_id=bay_id,
            user_id=user_id,
            start_time=start_time,
            end_time=end_time,
            party_size=party_size,
            status=status.value,
            expires_at=expires_at,
            total_amount_cents=amount_cents,
            created_by_employee_id=created_by_employee_id,
            notes=notes,
        )
        self.db.add(booking)
        self.db.flush()

        if payment_ref is not None:
            self.db.add(
                Payment(
                    booking_id=booking.id,
                    stripe_payment_intent_id=payment_ref,
                    amount_cents=amount_cents,
                    currency=currency,
                    status=PaymentStatus.PENDING.value,
                )
            )
            self.db.flush()

        return booking

    def cancel_booking_atomic(
        self, booking_id: str, employee_id: str, reason: str, now: datetime
    ) -> Booking:
        """
        Staff cancellation: no time-window rule, reserved or confirmed only.

        Writes the audit row with a zero refund; the caller fills in the
        refund once the gateway answers.
        """
        booking = self.get_for_update(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id, message="Booking not found")
        if booking.status == BookingStatus.CANCELLED.value:
            raise AlreadyCancelledException(booking_id)
        if booking.status not in (BookingStatus.RESERVED.value, BookingStatus.CONFIRMED.value):
            raise WrongStatusForOperationException(
                booking_id,
                booking.status,
                f"Cannot cancel a booking that is {booking.status}",
            )

        booking.status = BookingStatus.CANCELLED.value
        booking.expires_at = now
        self.add_cancellation(
            booking_id=booking.id,
            cancelled_by=employee_id,
            initiator=CancellationInitiator.EMPLOYEE,
            reason=reason,
            refund_amount_cents=0,
            cancelled_at=now,
        )
        return booking

    def add_cancellation(
        self,
        *,
        booking_id: str,
        cancelled_by: Optional[str],
        initiator: CancellationInitiator,
        reason: str,
        refund_amount_cents: int,
        cancelled_at: datetime,
        refund_id: Optional[str] = None,
    ) -> BookingCancellation:
        record = BookingCancellation(
            booking_id=booking_id,
            cancelled_by=cancelled_by,
            initiator=initiator.value,
            reason=reason,
            cancellation_fee_cents=0,
            refund_amount_cents=refund_amount_cents,
            refund_id=refund_id,
            cancelled_at=cancelled_at,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_latest_cancellation(self, booking_id: str) -> Optional[BookingCancellation]:
        stmt = (
            select(BookingCancellation)
            .where(BookingCancellation.booking_id == booking_id)
            .order_by(BookingCancellation.cancelled_at.desc(), BookingCancellation.id.desc())
        )
        return self.db.execute(stmt).scalars().first()

    def expire_stale_reservations(self, now: datetime) -> List[str]:
        """Move every lapsed reservation to expired. Returns the affected ids."""
        stale_ids = list(
            self.db.execute(
                select(Booking.id).where(
                    Booking.status == BookingStatus.RESERVED.value,
                    Booking.expires_at.is_not(None),
                    Booking.expires_at < now,
                )
            ).scalars()
        )
        if not stale_ids:
            return []
        self.db.execute(
            update(Booking)
            .where(
                Booking.id.in_(stale_ids),
                Booking.status == BookingStatus.RESERVED.value,
            )
            .values(status=BookingStatus.EXPIRED.value, expires_at=None)
            .execution_options(synchronize_session="fetch")
        )
        self.db.flush()
        return stale_ids

    # Side-effect ledger

    def record_event_once(self, booking_id: str, event_type: str, now: datetime) -> bool:
        """
        Insert the (booking, event) ledger row.

        Returns True only for the first caller; later calls are no-ops.
        """
        values = {
            "id": str(ulid.ULID()),
            "booking_id": booking_id,
            "event_type": event_type,
            "delivered_at": now,
        }
        dialect = self.dialect_name
        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = (
                insert_fn(BookingEventDelivery)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["booking_id", "event_type"])
            )
            result = self.db.execute(stmt)
            self.db.flush()
            return bool(getattr(result, "rowcount", 0))

        existing = self.db.execute(
            select(BookingEventDelivery.id).where(
                BookingEventDelivery.booking_id == booking_id,
                BookingEventDelivery.event_type == event_type,
            )
        ).first()
        if existing is not None:
            return False
        self.db.add(BookingEventDelivery(**values))
        self.db.flush()
        return True
