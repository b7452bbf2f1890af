# backend/baybook/repositories/base_repository.py
"""
Base repository for the bay booking engine.

Repositories own queries and flush their writes; the owning service decides
when the transaction commits.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import get_dialect_name

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Lookups and partial updates shared by every model repository.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    def get_by_id(self, id: str) -> Optional[T]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to load {self.model.__name__}: {str(e)}")

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """
        Set the given columns on one row and flush.

        Keys the model does not have are ignored. Returns None when the row
        does not exist.
        """
        try:
            entity = self.get_by_id(id)
            if entity is None:
                return None
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        """First row matching every keyword exactly, or None."""
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to find {self.model.__name__}: {str(e)}")
