"""
Module: inventory_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the inventory kernel.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except create_tables/drop_tables which import models).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) on the lots a commit touches.
    - SQLite (tests, single-node tools) opens every transaction with
      BEGIN IMMEDIATE, so writers serialize on the database lock and a
      commit's re-read always sees the last committed quantities.
    - Every unit of work commits as a whole or rolls back as a whole.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError on lock timeout (SQLite busy timeout exceeded).

Audit relevance:
    unit_of_work() is the boundary of atomicity for every ledger write: a
    movement is never persisted without its lot and item updates.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_immediate_begin(engine: Engine) -> None:
    """Make pysqlite emit BEGIN IMMEDIATE instead of its deferred BEGIN."""

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create an Engine for PostgreSQL or SQLite without touching module state.

    Preconditions: database_url is a valid SQLAlchemy URL.
    Postconditions: PostgreSQL engines use READ COMMITTED with a QueuePool;
        SQLite engines share connections across threads and begin every
        transaction with BEGIN IMMEDIATE.
    """
    backend = make_url(database_url).get_backend_name()

    if backend.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        )
        _install_sqlite_immediate_begin(engine)
    else:
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
        "engine_built",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def init_engine_from_url(database_url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Second call overwrites the first; use reset_engine() in tests.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    configure_logging()
    _engine = build_engine(database_url, echo=echo, **kwargs)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    InventoryService takes a factory rather than a session so that every
    caller-facing operation runs in its own transaction.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def unit_of_work(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope from an explicit session factory.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed and the exception
        is re-raised to the caller.
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Transactional scope over the module-level session factory.

    Usage:
        with session_scope() as session:
            session.add(entity)
            # Commits on successful exit, rolls back on exception
    """
    with unit_of_work(get_session_factory()) as session:
        yield session


def create_tables(engine: Engine | None = None) -> None:
    """
    Create the inventory tables.

    Args:
        engine: Target engine; defaults to the module-level engine.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401  registers the mappers

    target = engine if engine is not None else get_engine()
    Base.metadata.create_all(target)
    logger.info("tables_created", extra={"dialect": target.dialect.name})


def drop_tables(engine: Engine | None = None) -> None:
    """
    Drop the inventory tables, movements included.

    Args:
        engine: Target engine; defaults to the module-level engine.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    target = engine if engine is not None else get_engine()
    Base.metadata.drop_all(target)
    logger.warning("tables_dropped", extra={"dialect": target.dialect.name})


def reset_engine() -> None:
    """
    Reset the engine and session factory.

    Useful for test cleanup.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)

