"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def resolve_session_bind(session: Session) -> Optional[Connection | Engine]:
    """Return the engine/connection bound to a session, or None when unbound."""
    try:
        return session.get_bind()
    except UnboundExecutionError:
        return None


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """
    Return the SQLAlchemy dialect name for the session's bind.

    Falls back to ``default`` when the session is not bound (mocked sessions).
    """
    bind = resolve_session_bind(session)
    if bind is None:
        return default
    dialect = getattr(bind, "dialect", None)
    name = getattr(dialect, "name", None)
    return name if isinstance(name, str) else default


def supports_row_locks(session: Session) -> bool:
    """
    Whether SELECT ... FOR UPDATE takes a row lock on this backend.

    SQLite ignores FOR UPDATE; engines set up with
    ``enable_sqlite_write_locks`` hold the database write lock for the whole
    transaction instead.
    """
    return get_dialect_name(session) != "sqlite"


def enable_sqlite_write_locks(engine: Engine) -> None:
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so a read-check-insert
    sequence in two connections can interleave. Taking the write lock when
    the transaction begins serializes writers from their first read.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")
