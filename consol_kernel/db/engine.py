"""
Module: consol_kernel.db.engine
Responsibility: Process-wide SQLAlchemy engine and session factory for the
    SQL-backed collaborators, plus the transactional scope that owns commit
    and rollback.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from repositories/ or outer layers (table creation imports the
    models package lazily so Base.metadata is populated).

Invariants enforced:
    - Repositories flush, session_scope() commits.  Nothing else commits.
    - PostgreSQL runs READ COMMITTED with pre-ping; the ownership write path
      takes its own FOR UPDATE lock on the child entity row.
    - SQLite (local and test use) enforces foreign keys on every connection
      and uses a StaticPool so in-memory databases are shared by sessions.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from consol_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass
class _EngineState:
    engine: Engine
    sessions: sessionmaker[Session]


_state: _EngineState | None = None


def _require() -> _EngineState:
    if _state is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _state


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Build the engine for ``database_url`` and make it current.

    A second call disposes of nothing; call reset_engine() first when
    replacing a live engine.

    Args:
        database_url: PostgreSQL or SQLite URL.
        echo: Log every SQL statement.
        pool_size: Pooled connections (PostgreSQL only).
        max_overflow: Connections allowed beyond pool_size (PostgreSQL only).
    """
    global _state

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    _state = _EngineState(engine, sessionmaker(bind=engine, expire_on_commit=False))

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "url": url.render_as_string(hide_password=True),
            "echo": echo,
        },
    )
    return engine


def get_engine() -> Engine:
    return _require().engine


def get_session() -> Session:
    """A new session; the caller owns its transaction and must close it."""
    return _require().sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

    Usage:
        with session_scope() as session:
            repos = SqlRepositories(session)
            store = OwnershipGraphStore(repos.entities, repos.ownership, clock)
            store.create_relationship(...)
    """
    session = get_session()
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


def create_tables() -> None:
    from consol_kernel.db.base import Base
    import consol_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every collaborator table.  Tests only."""
    from consol_kernel.db.base import Base
    import consol_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose of the current engine, if any, and forget it."""
    global _state

    if _state is not None:
        _state.engine.dispose()
    _state = None
