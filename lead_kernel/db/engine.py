"""
Module: lead_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for scripts and the test harness.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  MUST NOT import from services/, selectors/ or outer
    layers (create_tables imports the model registry).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) where stronger isolation is needed.
    - SQLite connections hand transaction control to SQLAlchemy and open
      every transaction with BEGIN IMMEDIATE, so writers are serialized and
      SAVEPOINTs behave.
    - Connection pooling with pre-ping to handle stale connections.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError ("database is locked") when a SQLite writer waits
      longer than the busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from lead_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_begin_immediate(engine: Engine) -> None:
    """Let SQLAlchemy own SQLite transactions and begin them IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout: int = 30,
) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    PostgreSQL gets a sized pool at READ COMMITTED.  SQLite files get a
    busy timeout and the BEGIN IMMEDIATE listeners; in-memory SQLite is
    not supported because every session must see the same database.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            raise ValueError("in-memory SQLite is not supported; use a file path")
        engine = create_engine(
            url,
            echo=echo,
            pool_pre_ping=pool_pre_ping,
            connect_args={"timeout": busy_timeout, "check_same_thread": False},
        )
        _install_sqlite_begin_immediate(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(database_url: str, echo: bool = False, **engine_options) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call overwrites the first.  All subsequent get_engine /
    get_session calls use this engine.
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, echo=echo, **engine_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
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
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Useful for multi-threaded scenarios where each thread needs its own session.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; on exception rolls back, closes and re-raises.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
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


def create_tables(engine: Engine | None = None) -> None:
    """
    Create all tables defined in the models and register immutability listeners.

    Imports the model registry so Base.metadata contains every table.
    """
    from lead_kernel.db.base import Base
    from lead_kernel.db.immutability import register_immutability_listeners
    from lead_kernel.models import import_all_models

    engine = engine or get_engine()
    import_all_models()
    Base.metadata.create_all(engine)
    register_immutability_listeners()


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from lead_kernel.db.base import Base
    from lead_kernel.models import import_all_models

    import_all_models()
    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Reset the engine and session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"


def is_sqlite() -> bool:
    if _engine is None:
        return False
    return _engine.dialect.name == "sqlite"
