from typing import Any, Callable, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL, DB_RETRY_ATTEMPTS
from .logging_config import get_logger

logger = get_logger(__name__)


def build_engine(url: str):
    """Create an engine for `url`; in-memory SQLite shares one connection."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_engine(url, **kwargs)

        # pysqlite defers BEGIN; take over so SAVEPOINTs nest correctly
        @event.listens_for(sqlite_engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(sqlite_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

        return sqlite_engine
    # Idle connections dropped by the server are detected before use
    return create_engine(url, pool_pre_ping=True)


logger.info("Using DATABASE_URL: %s", DATABASE_URL.split("@")[-1])

engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def create_db_and_tables(bind=None):
    from . import models  # noqa: F401  registers mappers on Base
    from .immutability import register_immutability_listeners

    register_immutability_listeners()
    Base.metadata.create_all(bind=bind or engine)


def run_in_transaction(
    db: Session,
    operation: Callable[..., Any],
    *args,
    attempts: Optional[int] = None,
    **kwargs,
) -> Any:
    """
    Run `operation(db, *args, **kwargs)` as one unit of work.

    Commits on success and rolls back on any exception. When the driver
    reports that the connection was invalidated (an idle connection terminated
    by the server) the whole operation is replayed on a fresh connection, up
    to `attempts` extra times (default DB_RETRY_ATTEMPTS). Every other error
    is re-raised after the rollback.
    """
    retries = DB_RETRY_ATTEMPTS if attempts is None else attempts
    attempt = 0
    while True:
        try:
            result = operation(db, *args, **kwargs)
            db.commit()
            return result
        except DBAPIError as e:
            db.rollback()
            if e.connection_invalidated and attempt < retries:
                attempt += 1
                logger.warning(
                    "Database connection lost during %s, retrying (%d/%d)",
                    getattr(operation, "__name__", "operation"), attempt, retries,
                )
                continue
            raise
        except Exception:
            db.rollback()
            raise
