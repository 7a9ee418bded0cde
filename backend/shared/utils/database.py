"""
Postgres access for match rows.

Viewer reads go through ``read_session``; scorer timer writes go through
``write_session`` so the UPDATE commits before the change is published.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """One engine per process; ``connect()`` must run before any session is opened."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        self._engine = create_async_engine(
            self._settings.database_url_str,
            pool_size=self._settings.db_pool_min,
            max_overflow=max(0, self._settings.db_pool_max - self._settings.db_pool_min),
            pool_pre_ping=True,
            pool_recycle=300,
            echo=self._settings.debug,
            connect_args={"command_timeout": self._settings.db_command_timeout},
        )
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        # password masked
        logger.info("database_connected", url=self._settings.database_url_safe_log)

    async def disconnect(self) -> None:
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("database_disconnected")

    async def ping(self) -> bool:
        """``SELECT 1``; raises if Postgres is unreachable."""
        async with self.read_session() as session:
            await session.execute(text("SELECT 1"))
        return True

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not connected. Call connect() first.")
        return self._session_factory

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Commit when the block exits cleanly; roll back and re-raise otherwise."""
        async with self._factory()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
