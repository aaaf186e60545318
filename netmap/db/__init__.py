"""Database package: engine factory, sessions and ORM base."""

from .engine import (
    Base,
    async_session_factory,
    create_engine_for,
    dispose_db,
    engine,
    get_db,
    init_db,
    session_factory,
)

__all__ = [
    "Base",
    "async_session_factory",
    "create_engine_for",
    "dispose_db",
    "engine",
    "get_db",
    "init_db",
    "session_factory",
]
