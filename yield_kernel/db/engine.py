"""
Module: yield_kernel.db.engine
Responsibility: Builds engines for PostgreSQL and SQLite, holds the optional
    process-wide engine, and defines session_scope(), the unit of work every
    public operation runs in.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/ or domain/ (create_tables imports models).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with QueuePool and pre-ping.
    - SQLite runs with driver-level transaction control handed to SQLAlchemy
      so that SAVEPOINTs (sequence counter creation) behave correctly.
      Transactions open with BEGIN IMMEDIATE, serializing writers.
      In-memory SQLite URLs share one connection via StaticPool and are
      therefore single-threaded; use a file URL for concurrent callers.

Failure modes:
    - RuntimeError if get_engine/get_session_factory is called
      before init_engine_from_url().

Audit relevance:
    Every public router operation runs inside session_scope(): commit on
    success, rollback on any exception.  That scope is the atomic unit of
    work for deposits, withdrawals, payouts and sweeps.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from yield_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Process-wide engine, set by init_engine_from_url()
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_savepoint_support(engine: Engine) -> None:
    """Let SQLAlchemy emit BEGIN itself so nested SAVEPOINTs work on pysqlite."""

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    # IMMEDIATE takes the write lock up front, so concurrent writers wait on
    # the busy timeout instead of failing on lock upgrade
    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


_POSTGRES_POOL_DEFAULTS = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_recycle": 1800,
}

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_timeout: int = 30,
    **pool_options,
) -> Engine:
    """
    Create an engine for PostgreSQL or SQLite without touching module state.

    ``pool_timeout`` doubles as the SQLite busy timeout.  Remaining
    ``pool_options`` override the PostgreSQL QueuePool defaults and are
    ignored for SQLite.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_timeout=pool_timeout,
            isolation_level="READ COMMITTED",
            **{**_POSTGRES_POOL_DEFAULTS, **pool_options},
        )

    extra: dict = {}
    if database_url in _MEMORY_URLS:
        extra["poolclass"] = StaticPool
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False, "timeout": pool_timeout},
        **extra,
    )
    _install_sqlite_savepoint_support(engine)
    return engine


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Build the process-wide engine and session factory.

    A second call replaces the first; the previous engine is not disposed.
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, echo=echo, **pool_options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def _require_initialized() -> tuple[Engine, sessionmaker[Session]]:
    if _engine is None or _SessionFactory is None:
        raise RuntimeError("No engine: call init_engine_from_url() first")
    return _engine, _SessionFactory


def get_engine() -> Engine:
    return _require_initialized()[0]


def get_session_factory() -> sessionmaker[Session]:
    """Factory for the process-wide engine; the orchestrator opens one session per call."""
    return _require_initialized()[1]


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """
    One unit of work: commit on clean exit, roll back and re-raise otherwise.

    Kernel services only flush; this is where their changes become durable.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back")
        raise
    finally:
        session.close()


def _metadata():
    from yield_kernel.db.base import Base
    import yield_kernel.models  # noqa: F401  (registers every table on Base.metadata)

    return Base.metadata


def create_tables(engine: Engine | None = None) -> None:
    _metadata().create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    _metadata().drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose and forget the process-wide engine.  Tests and shutdown."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)
