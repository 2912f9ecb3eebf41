"""
Engines, sessions and the transaction boundary of the placement store.

PostgreSQL is the production backend: pooled connections at READ COMMITTED,
with ``FOR UPDATE`` row locks and conditional updates where a service needs
more than that.  SQLite (file or memory) is accepted for tests and embedded
use; pysqlite's implicit transactions are switched off and SQLAlchemy emits
``BEGIN`` itself, so savepoints and rollback behave as on PostgreSQL.

Two ways in:

* ``build_engine(url)`` returns an engine and touches no module state.
* ``init_engine_from_url(url)`` builds one and installs it as the process
  engine behind ``get_session()`` and ``session_scope()``.  Calling the
  accessors before that raises RuntimeError.

``session_scope()`` is the unit of work: commit on success, rollback on any
exception, and driver connection failures surface as
``StoreUnavailableError``.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from placement_kernel.exceptions import StoreUnavailableError
from placement_kernel.logging_config import get_logger

logger = get_logger("db.engine")

# Process engine, set by init_engine_from_url
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_transaction_recipe(engine: Engine) -> None:
    """Let SQLAlchemy, not pysqlite, emit BEGIN; enable foreign keys."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for ``database_url`` without touching module state.

    SQLite engines get the explicit-BEGIN recipe; an in-memory SQLite URL
    shares one connection across checkouts.  Other backends get a sized
    pool at READ COMMITTED.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        kwargs: dict = {
            "echo": echo,
            "connect_args": {"check_same_thread": False},
        }
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise each checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_transaction_recipe(engine)
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


def init_engine_from_url(database_url: str, **options) -> Engine:
    """
    Build the process engine and session factory; a second call replaces both.

    ``options`` are passed to ``build_engine`` (echo, pool sizing, timeouts).
    """
    global _engine, _SessionFactory

    _engine = build_engine(database_url, **options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": options.get("echo", False)},
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    """The engine set up by ``init_engine_from_url``; RuntimeError before that."""
    _require_factory()
    return _engine


def get_session() -> Session:
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The module session factory, for callers that open one session per thread."""
    return _require_factory()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back on any exception.

    Domain errors pass through unchanged.  ``OperationalError`` and
    ``InterfaceError`` from the driver (server gone, file unreadable, pool
    exhausted) are re-raised as ``StoreUnavailableError``.

    Usage:
        with session_scope() as session:
            ContractService(session, clock, limits).terminate(contract_id, caller)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except (OperationalError, InterfaceError) as exc:
        session.rollback()
        logger.error("transaction_store_failure", exc_info=True)
        raise StoreUnavailableError(str(exc.orig or exc)) from exc
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from placement_kernel.db.base import Base
    import placement_kernel.models  # noqa: F401  (registers the tables)

    return Base.metadata


def create_tables() -> None:
    """Create every placement table and index that does not exist yet."""
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every placement table.  Destroys all data."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the module factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
