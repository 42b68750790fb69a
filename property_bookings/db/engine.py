"""
SQLAlchemy engine singleton with production-ready connection pooling.

Admission relies on one transaction per check-and-write. On PostgreSQL the
property row lock taken inside that transaction serializes bookings per
property. SQLite has no row locks, so SQLite engines open every transaction
with BEGIN IMMEDIATE, which takes the database write lock up front and
serializes writers as a whole.
"""

from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url

from property_bookings.config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_SIZE


def _install_sqlite_immediate_begin(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's lazy deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given database URL.

    Args:
        url: SQLAlchemy database URL
        echo: Log emitted SQL (development only)

    Returns:
        Engine: Configured engine. SQLite engines get the BEGIN IMMEDIATE hook.

    Example:
        >>> engine = build_engine("sqlite:////tmp/bookings.db")
        >>> with engine.begin() as conn:
        ...     lock_property(conn, "prop-1")
    """
    if make_url(url).get_backend_name() == "sqlite":
        engine = create_engine(url, future=True, echo=echo)
        _install_sqlite_immediate_begin(engine)
        return engine

    return create_engine(
        url,
        future=True,
        pool_size=DB_POOL_SIZE,  # Number of connections to maintain in the pool
        max_overflow=DB_MAX_OVERFLOW,  # Additional connections when pool is exhausted
        pool_pre_ping=True,  # Detect stale connections before handing them out
        pool_recycle=3600,  # Recycle connections after 1 hour
        echo=echo,
    )


engine: Engine = build_engine(DATABASE_URL)


def check_engine_health(target: Engine | None = None) -> bool:
    """
    Check if the database is reachable.

    Args:
        target: Engine to probe (defaults to the module engine)

    Returns:
        bool: True if a trivial query succeeds, False otherwise
    """
    try:
        with (target or engine).connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
