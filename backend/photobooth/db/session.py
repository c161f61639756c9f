from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from photobooth.core.config import settings
from photobooth.db import models  # noqa: F401  registers the tables on Base
from photobooth.db.base import Base


def build_engine(database_url: str) -> AsyncEngine:
    # SQLite (tests, local smoke runs) has no server connection to ping.
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url)
    return create_async_engine(database_url, pool_pre_ping=True)


async_engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables(engine: AsyncEngine = async_engine) -> None:
    """Create any missing tables for events, photo sessions and AI photos."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
