"""Engine and session construction for the key/value store."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from swapflow.config import Settings
from swapflow.storage.models import Base


def async_database_url(database_url: str) -> str:
    """Use the aiosqlite driver for plain sqlite URLs."""
    if database_url.startswith("sqlite:///") and "aiosqlite" not in database_url:
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


def create_engine(settings: Settings) -> AsyncEngine:
    """Create an engine for ``settings.database_url``."""
    return create_async_engine(
        async_database_url(settings.database_url),
        echo=settings.debug and not settings.is_production,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
