"""Async database manager for Tenancy-Engine (single shared database)."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenancy_engine.common.config import TenancySettings, get_settings
from tenancy_engine.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import tenancy_engine.tenants.models  # noqa: F401


class DatabaseManager:
    """Manages the async engine shared by the registry and tenant-bound requests."""

    def __init__(self, settings: TenancySettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=self._settings.db_echo)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @property
    def url(self) -> URL:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        return self.engine.url

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @asynccontextmanager
    async def connect(self) -> AsyncGenerator[AsyncConnection, None]:
        """Check out one connection for exclusive use by the caller."""
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.connect() as conn:
            yield conn

    def session_for(self, conn: AsyncConnection) -> AsyncSession:
        """ORM session that runs every statement inside ``conn``'s transaction.

        Commits issued through the session do not end the connection's
        transaction; the owner of ``conn`` decides when it commits.
        """
        return AsyncSession(
            bind=conn, expire_on_commit=False, join_transaction_mode="rollback_only"
        )

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
