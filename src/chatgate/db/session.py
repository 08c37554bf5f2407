"""Async database session factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .models.base import Base


class DatabaseSessionManager:
    """Manages database engine and session creation.

    Constructed once at start-up and owned by the gateway container.

    Attributes:
        engine: SQLAlchemy async engine instance
        session_factory: Factory for creating async sessions
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        **engine_kwargs: Any,
    ) -> None:
        """Initialize database session manager.

        Args:
            database_url: Async database URL (postgresql+asyncpg:// or sqlite+aiosqlite://)
            pool_size: Number of persistent connections in the pool
            max_overflow: Max additional connections beyond pool_size
            **engine_kwargs: Additional arguments passed to create_async_engine
        """
        if database_url.startswith("sqlite"):
            # One shared connection keeps in-memory databases alive
            engine_kwargs.setdefault("poolclass", StaticPool)
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                pool_recycle=3600,
            )

        self.engine: AsyncEngine = create_async_engine(database_url, **engine_kwargs)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def close(self) -> None:
        """Close database engine and all connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Session committed on success and rolled back on error.

        Example:
            async with manager.transaction() as session:
                session.add(tenant)
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create all tables defined in Base metadata.

        Schema migrations are managed outside the gateway; this is for
        development and tests.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
