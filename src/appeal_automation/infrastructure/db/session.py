"""Async SQLAlchemy session factory helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

_SQLITE_BUSY_TIMEOUT_SECONDS = 30.0


def create_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create a reusable async session factory for the provided database URL."""

    engine_kwargs: dict[str, Any] = {}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Concurrent case writers wait on the file lock instead of failing fast.
        engine_kwargs["connect_args"] = {"timeout": _SQLITE_BUSY_TIMEOUT_SECONDS}
    else:
        engine_kwargs["pool_pre_ping"] = True

    engine = create_async_engine(database_url, **engine_kwargs)
    return async_sessionmaker(engine, expire_on_commit=False)
