"""Database engine, session factory, and base model.

``create_engine_for`` builds an async engine for any URL; SQLite engines
get foreign keys switched on so map nodes and relations follow their map
on delete.  The module-level ``engine`` serves the app.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from netmap.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def _sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


def create_engine_for(url: str, **kwargs) -> AsyncEngine:
    """Async engine for ``url``.

    SQLite defaults to NullPool (one connection per session) unless the
    caller passes its own ``poolclass``.
    """
    kwargs.setdefault("echo", settings.DEBUG)
    if url.startswith("sqlite"):
        kwargs.setdefault("poolclass", NullPool)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        eng = create_async_engine(url, **kwargs)
        event.listen(eng.sync_engine, "connect", _sqlite_pragmas)
        return eng

    kwargs.setdefault("pool_size", 5)
    kwargs.setdefault("max_overflow", 10)
    return create_async_engine(url, **kwargs)


def session_factory(eng: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(eng, class_=AsyncSession, expire_on_commit=False)


engine = create_engine_for(settings.DATABASE_URL)
async_session_factory = session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables. Alembic owns the schema in production."""
    from netmap.db import models as _models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def dispose_db() -> None:
    await engine.dispose()
