# backend/baybook/repositories/location_repository.py
"""Venue and bay inventory lookups."""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.location import Bay, Location
from .base_repository import BaseRepository


class LocationRepository(BaseRepository[Location]):
    def __init__(self, db: Session):
        super().__init__(db, Location)

    def get_bay(self, bay_id: str) -> Optional[Bay]:
        return self.db.get(Bay, bay_id)

    def count_bays(self, location_id: str) -> int:
        """Active bay inventory, the capacity every hold policy is measured against."""
        stmt = select(func.count(Bay.id)).where(
            Bay.location_id == location_id, Bay.is_active.is_(True)
        )
        return int(self.db.execute(stmt).scalar_one())
