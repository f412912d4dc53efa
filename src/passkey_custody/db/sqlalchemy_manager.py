"""SQLAlchemy database manager for the orphan ledger."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base


class SQLAlchemyManager:
    """Manages SQLAlchemy database connections and sessions."""

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    async def initialize(self, database_url: str) -> None:
        """Initialize the async engine and session factory."""
        # Convert sync URL to async URL for asyncpg
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://")
        elif database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://")

        engine_kwargs = {"echo": False, "pool_pre_ping": True}
        if database_url.startswith("postgresql+asyncpg://"):
            engine_kwargs.update(pool_size=5, max_overflow=5, pool_recycle=3600)

        self._engine = create_async_engine(database_url, **engine_kwargs)
        self._sessionmaker = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

    async def close(self) -> None:
        """Close the database engine."""
        if self._engine:
            await self._engine.dispose()

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session."""
        if not self._sessionmaker:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all_tables(self) -> None:
        """Create all tables defined by models."""
        if not self._engine:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


async def init_db(database_url: str) -> SQLAlchemyManager:
    """Initialize a database manager and make sure the ledger table exists."""
    manager = SQLAlchemyManager()
    await manager.initialize(database_url)
    await manager.create_all_tables()
    return manager
