# backend/baybook/database/__init__.py
"""
Database engine, session factory and declarative base.

Services receive a Session from ``get_db_session``; repositories never commit
on their own.
"""

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import settings
from .session_utils import enable_sqlite_write_locks

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> Dict[str, Any]:
    """SQLite needs thread sharing for the worker; Postgres gets a sized pool."""
    if db_url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url:
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True, "pool_recycle": 1800}


engine: Engine = create_engine(settings.database_url, **_build_engine_kwargs(settings.database_url))
enable_sqlite_write_locks(engine)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base = declarative_base()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Session scope for jobs and scripts: commit on success, roll back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = ["Base", "SessionLocal", "engine", "get_db_session"]
