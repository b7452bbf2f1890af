# backend/baybook/repositories/capacity_hold_repository.py
"""
Capacity Hold Repository.

Reads are driven by :class:`HoldQuery`; writes are plain attribute updates
flushed inside the caller's transaction.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session, selectinload

from ..core.enums import HoldStatus
from ..models.capacity_hold import CapacityHold
from .base_repository import BaseRepository


@dataclass(frozen=True)
class HoldQuery:
    """Explicit filter set for hold reads. Unset fields do not filter."""

    location_id: Optional[str] = None
    league_id: Optional[str] = None
    league_week_id: Optional[str] = None
    hold_date: Optional[date] = None
    on_or_after: Optional[date] = None
    statuses: Optional[Sequence[HoldStatus]] = None


class CapacityHoldRepository(BaseRepository[CapacityHold]):
    def __init__(self, db: Session):
        super().__init__(db, CapacityHold)

    def find(self, query: HoldQuery) -> List[CapacityHold]:
        """Matching holds ordered by date, then start time, then creation order."""
        conditions = []
        if query.location_id is not None:
            conditions.append(CapacityHold.location_id == query.location_id)
        if query.league_id is not None:
            conditions.append(CapacityHold.league_id == query.league_id)
        if query.league_week_id is not None:
            conditions.append(CapacityHold.league_week_id == query.league_week_id)
        if query.hold_date is not None:
            conditions.append(CapacityHold.hold_date == query.hold_date)
        if query.on_or_after is not None:
            conditions.append(CapacityHold.hold_date >= query.on_or_after)
        if query.statuses:
            conditions.append(CapacityHold.status.in_([s.value for s in query.statuses]))

        stmt = select(CapacityHold).options(selectinload(CapacityHold.league))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(
            CapacityHold.hold_date,
            CapacityHold.start_time,
            CapacityHold.created_at,
            CapacityHold.id,
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_active_for_week(self, league_id: str, league_week_id: str) -> Optional[CapacityHold]:
        holds = self.find(
            HoldQuery(
                league_id=league_id,
                league_week_id=league_week_id,
                statuses=(HoldStatus.ACTIVE,),
            )
        )
        return holds[0] if holds else None

    def bulk_insert(self, holds: Sequence[CapacityHold]) -> List[CapacityHold]:
        self.db.add_all(list(holds))
        self.db.flush()
        return list(holds)

    def set_status_for_league(
        self, league_id: str, from_status: HoldStatus, to_status: HoldStatus
    ) -> int:
        result = self.db.execute(
            update(CapacityHold)
            .where(
                CapacityHold.league_id == league_id,
                CapacityHold.status == from_status.value,
            )
            .values(status=to_status.value)
            .execution_options(synchronize_session="fetch")
        )
        self.db.flush()
        return int(result.rowcount or 0)
