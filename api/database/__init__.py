from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import get_settings


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    url = settings.generate_database_url()
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.env.DEBUG, connect_args={"check_same_thread": False})
    return create_async_engine(url, echo=settings.env.DEBUG, pool_pre_ping=True)


@lru_cache
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False, autoflush=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency; services own commit, anything left open is rolled back."""
    async with get_session_maker()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
