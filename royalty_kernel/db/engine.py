"""
Engine and session management for the royalty ledger.

One engine per process, created by ``init_engine_from_url``.  Services never
open connections themselves: they receive a ``Session`` from the caller, or
(for settlement callbacks) open one through ``session_scope``.

Backends:
    PostgreSQL via psycopg2 is the production target and runs at READ
    COMMITTED.  Status transitions are conditional UPDATEs keyed on the
    expected status, so the first writer wins without row locks.

    SQLite serves tests and embedded use.  An in-memory URL is pinned to a
    single shared connection (StaticPool) so every session sees the same
    ledger; a file URL gets a busy timeout so concurrent writers queue.

Calling ``get_engine``, ``get_session`` or ``get_session_factory`` before
``init_engine_from_url`` raises RuntimeError.
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from royalty_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Ledger database not initialized; call init_engine_from_url() first."


def _engine_options(
    url: URL,
    *,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
    sqlite_busy_timeout: int,
) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        options: dict[str, Any] = {
            "connect_args": {"check_same_thread": False, "timeout": sqlite_busy_timeout},
        }
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        return options

    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
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
    Create the process-wide engine and session factory.

    ``database_url`` is a postgresql://, sqlite:///path.db or sqlite:// URL.
    The pool arguments only apply to PostgreSQL; ``sqlite_busy_timeout`` is
    how long a SQLite writer waits for the database lock.  Sessions from the
    factory keep attribute values after commit (``expire_on_commit=False``)
    so returned play records stay readable once their session is closed.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    options = _engine_options(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        sqlite_busy_timeout=sqlite_busy_timeout,
    )
    _engine = create_engine(url, echo=echo, **options)
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "pool_size": options.get("pool_size"),
            "echo": echo,
        },
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session() -> Session:
    """A fresh session bound to the ledger engine.  The caller closes it."""
    return _require_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The shared factory, for workers that need one session per thread."""
    return _require_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on clean exit, roll back and re-raise on error, always close.

    Settlement callbacks run inside one of these so a failed status write
    leaves no partial change behind::

        with session_scope() as session:
            RoyaltyLedgerService(session, catalog).record_play(...)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    else:
        logger.debug("transaction_committed")
    finally:
        session.close()


def create_tables(install_listeners: bool = True) -> None:
    """
    Create the ledger tables.

    With ``install_listeners`` the ORM guards that freeze calculated amounts
    and protect the audit log are registered as well.
    """
    from royalty_kernel.db.base import Base
    import royalty_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})

    if install_listeners:
        from royalty_kernel.db.immutability import register_immutability_listeners

        register_immutability_listeners()


def drop_tables() -> None:
    """Drop every ledger table.  Test use only."""
    from royalty_kernel.db.base import Base
    import royalty_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())
    logger.info("tables_dropped")


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
