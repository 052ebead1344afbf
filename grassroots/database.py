"""
Grassroots Hub Backend — Database Engine & Sessions
=====================================================

What:  Async SQLAlchemy engine, session factory and declarative base.
Why:   All connection handling lives in one place; services receive the
       session factory explicitly instead of importing a shared connection.
How:   build_engine() picks pool options by backend (PostgreSQL pool sizing,
       SQLite foreign keys, busy timeout and BEGIN IMMEDIATE).
       Each service opens its own transactions from the session factory.
Who:   Services (via the factory), health route, Alembic (via Base).

Dual backend notes:
    SQLite:      Foreign keys are off by default; enabled per connection so
                 ON DELETE CASCADE from trial_lists works. The driver's own
                 deferred BEGIN is switched off and every transaction opens
                 with BEGIN IMMEDIATE, so the writer lock is held before the
                 first read. A second writer on any connection or process
                 waits up to busy_timeout at BEGIN, then fails as "database
                 is locked".
    PostgreSQL:  Pool sizing from settings; lock_timeout bounds how long a
                 ranking mutation waits on the trial list row lock.
"""

from typing import Any, Dict, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from grassroots.config import settings


class Base(DeclarativeBase):
    """Base class for all ORM models (shared metadata used by Alembic)."""
    pass


def _enable_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    # The driver must not issue its own BEGIN; _begin_immediate does.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute(f"PRAGMA busy_timeout={settings.db_lock_timeout * 1000}")
    cursor.close()


def _begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: Optional[str] = None, **overrides: Any) -> AsyncEngine:
    """
    Create an async engine configured for the backend named in the URL.

    Args:
        database_url: Defaults to settings.database_url.
        overrides:    Extra create_async_engine kwargs (tests pass poolclass).

    Returns:
        AsyncEngine with the SQLite pragma and BEGIN IMMEDIATE listeners
        installed when applicable.
    """
    url = database_url or settings.database_url
    kwargs: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}

    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": settings.db_lock_timeout}
    else:
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    kwargs.update(overrides)

    new_engine = create_async_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_pragmas)
        event.listen(new_engine.sync_engine, "begin", _begin_immediate)
    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: ORM objects stay readable after the
    # unit of work commits, when responses are built.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine()
async_session_factory = build_session_factory(engine)


async def create_all(bind: Optional[AsyncEngine] = None) -> None:
    """Create every table registered on Base (development and tests; production uses Alembic)."""
    import grassroots.models  # noqa: F401  registers models on Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close every pooled connection; called from the app lifespan on shutdown."""
    await engine.dispose()
