"""
Module: stock_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factories and the
    transactional scope utility.  The engine and factory are passed
    explicitly to whoever needs them; there is no module-level global.
Architecture position: Kernel > DB.  May import from db/base.py and the
    kernel exceptions.  create_tables/drop_tables import models/.

Invariants enforced:
    - PostgreSQL is the production backend (READ COMMITTED plus explicit
      SELECT ... FOR UPDATE on the write path).
    - SQLite is accepted for tests and local runs.  Writers are serialized
      with BEGIN IMMEDIATE so the single-writer guarantee still holds when
      several threads share one database file.
    - session_scope() is all-or-nothing: commit on success, rollback on any
      exception.  An optimistic-version mismatch surfaces as
      ConcurrencyConflictError.

Failure modes:
    - ConcurrencyConflictError when a versioned row was changed by another
      transaction between read and commit.
    - OperationalError when the database is unreachable or busy past its
      timeout.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from stock_kernel.exceptions import ConcurrencyConflictError
from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """
    Take over transaction control from pysqlite.

    pysqlite's own BEGIN handling breaks SAVEPOINT and defers the write
    lock; emitting BEGIN IMMEDIATE ourselves fixes both.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: int = 30,
) -> Engine:
    """
    Create an Engine for the given URL.

    Args:
        database_url: postgresql://... for production, sqlite:///... or
            sqlite:// (in-memory) for tests.
        echo: If True, log all SQL statements.
        pool_size: PostgreSQL only. Connections kept in the pool.
        max_overflow: PostgreSQL only. Connections beyond pool_size.
        pool_pre_ping: PostgreSQL only. Test connections before use.
        pool_timeout: PostgreSQL only. Seconds to wait for a connection.
        pool_recycle: PostgreSQL only. Seconds before a connection is recycled.
        sqlite_busy_timeout: SQLite only. Seconds a writer waits for the
            database lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    configure_logging()

    if database_url.startswith("sqlite"):
        in_memory = database_url in ("sqlite://", "sqlite:///:memory:")
        kwargs: dict = {
            "echo": echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        }
        if in_memory:
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)
        _install_sqlite_transaction_hooks(engine)
        logger.info(
            "engine_initialized",
            extra={"dialect": "sqlite", "in_memory": in_memory, "echo": echo},
        )
        return engine

    engine = create_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )
    logger.info(
        "engine_initialized",
        extra={
            "dialect": engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory bound to `engine`. One session per thread."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, the session is committed and closed.
        On exception, the session is rolled back and closed and the
        exception is re-raised.  StaleDataError is re-raised as
        ConcurrencyConflictError.

    Usage:
        with session_scope(factory) as session:
            BatchLedger(session, clock).add_batch(...)
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except StaleDataError as exc:
        session.rollback()
        logger.warning("transaction_rolled_back_stale", exc_info=True)
        raise ConcurrencyConflictError(
            "row", "unknown", reason=str(exc)
        ) from exc
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create all tables defined in the models.

    Preconditions: none; all ORM models are imported here so Base.metadata
        is complete.
    """
    from stock_kernel.db.base import Base
    from stock_kernel.models import import_all_models

    import_all_models()
    Base.metadata.create_all(engine)
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables(engine: Engine) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from stock_kernel.db.base import Base
    from stock_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(engine)
