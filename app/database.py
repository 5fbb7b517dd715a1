"""Database utilities and key-value storage for the WatchDeck service."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base with consistent naming conventions."""

    metadata = MetaData()


class Database:
    """Thin wrapper managing the SQLAlchemy async engine and sessions."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create database tables if they do not yet exist."""

        # Register the ORM tables on the shared metadata.
        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        await self._engine.dispose()


class KeyValueStorage(Protocol):
    """Durable string storage addressed by opaque keys."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class SqlKeyValueStorage:
    """Key-value storage persisted in the ``kv_entries`` table.

    Write errors are not caught here; they reach the caller unchanged.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        from .db_models import KeyValueEntry

        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                return None
            return entry.value

    async def set(self, key: str, value: str) -> None:
        from .db_models import KeyValueEntry

        now = datetime.utcnow()
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                session.add(
                    KeyValueEntry(key=key, value=value, created_at=now, updated_at=now)
                )
            else:
                entry.value = value
                entry.updated_at = now
            await session.commit()


class MemoryKeyValueStorage:
    """Process-local storage used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value
