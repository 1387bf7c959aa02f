"""
Database connection and session management.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; SQLite (tests, local) skips pool pre-ping."""
    kwargs = {"echo": settings.debug, "future": True}
    if not url.startswith("sqlite"):
        kwargs["pool_pre_ping"] = True
    return create_async_engine(url, **kwargs)


engine = build_engine(settings.database_url)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def configure_engine(new_engine: AsyncEngine) -> None:
    """Point every session factory at another engine (test databases)."""
    global engine
    engine = new_engine
    async_session_factory.configure(bind=new_engine)


async def init_db():
    """Create all tables (development only; use migrations in production)."""
    import app.models  # noqa: F401  (populate metadata)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context():
    """Context manager for use outside of FastAPI request lifecycle."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
