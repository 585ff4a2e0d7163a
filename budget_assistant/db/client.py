"""Engine and session handling for the budget database.

A process talks to one database, chosen by the first URL it sees (the CLI's
``--database-url`` or ``DATABASE_URL``). Typical command flow::

    init_db(database_url=url)             # tables + stock defaults
    with session_scope(database_url=url) as session:
        snap = load_snapshot(session)
        ...                               # writes commit together

SQLite connections get ``PRAGMA foreign_keys=ON`` so dropping a category
leaves its purchases uncategorized instead of pointing at a missing row.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..logging_setup import get_logger
from .models import Base

logger = get_logger(__name__)

DATABASE_URL_ENV = "DATABASE_URL"


class DatabaseNotConfigured(RuntimeError):
    """Neither an explicit URL nor ``DATABASE_URL`` was given."""


class _Bound:
    engine: Engine | None = None
    url: str | None = None


def resolve_database_url(override: str | None = None) -> str:
    url = override or os.getenv(DATABASE_URL_ENV)
    if not url:
        raise DatabaseNotConfigured(f"{DATABASE_URL_ENV} is not set")
    return url


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(*, database_url: str | None = None) -> Engine:
    """Return the process engine, binding it to ``database_url`` on first use.

    Asking for a different URL once bound raises ``RuntimeError``; call
    :func:`reset_engine` first.
    """

    url = resolve_database_url(database_url)
    if _Bound.engine is not None:
        if url != _Bound.url:
            raise RuntimeError(f"database already bound to {_Bound.url!r}; reset_engine() before rebinding")
        return _Bound.engine

    engine = create_engine(url, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    _Bound.engine = engine
    _Bound.url = url
    logger.debug("bound database engine (%s)", engine.dialect.name)
    return engine


def reset_engine() -> None:
    """Dispose the engine so the next call may bind another URL."""

    if _Bound.engine is not None:
        _Bound.engine.dispose()
    _Bound.engine = None
    _Bound.url = None


@contextmanager
def session_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """Yield a session that commits on success and rolls back on any error."""

    session = Session(get_engine(database_url=database_url), expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("rolled back budget session")
        raise
    finally:
        session.close()


def init_db(*, database_url: str | None = None, seed: bool = True) -> Engine:
    """Create missing tables and, unless ``seed`` is false, store the stock defaults.

    Seeding only fills empty tables, so running this again is harmless.
    """

    from ..persistence import seed_defaults

    engine = get_engine(database_url=database_url)
    Base.metadata.create_all(bind=engine)
    if seed:
        with session_scope(database_url=database_url) as session:
            seed_defaults(session)
    return engine


__all__ = [
    "DATABASE_URL_ENV",
    "DatabaseNotConfigured",
    "resolve_database_url",
    "get_engine",
    "reset_engine",
    "session_scope",
    "init_db",
]
