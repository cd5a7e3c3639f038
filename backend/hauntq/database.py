"""
Database connection and session management.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from hauntq.config import get_settings

settings = get_settings()

database_url = settings.async_database_url

engine_kwargs = {
    "echo": settings.database_echo,  # Log SQL queries when asked to
    "pool_pre_ping": True,  # Verify connections before using
}
if database_url.startswith("sqlite"):
    # Concurrent writers wait on the file lock instead of failing straight away
    engine_kwargs["connect_args"] = {"timeout": 15}

# Create async engine
engine = create_async_engine(database_url, **engine_kwargs)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.
    Automatically handles commit/rollback and closing.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency that provides the session factory.

    Allocation operations open their own transactions so they can retry
    them as a whole.
    """
    return async_session_maker


async def init_db() -> None:
    """Initialize database tables."""
    # Register every model on the metadata before creating tables
    import hauntq.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
