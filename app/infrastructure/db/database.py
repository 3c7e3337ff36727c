"""
Database Configuration
Async SQLAlchemy setup for PostgreSQL (asyncpg) or SQLite (aiosqlite)
"""

import os

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def async_database_url(url: str) -> str:
    """Convert postgres:// URLs to postgresql+asyncpg://"""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = async_database_url(settings.DATABASE_URL)

# Avoid creating the async engine during Alembic autogenerate runs
ALEMBIC_MODE = os.getenv("ALEMBIC_MODE") == "1" or os.getenv("ALEMBIC_CONTEXT") == "1"


def build_engine(url: str = DATABASE_URL, echo: bool = settings.DEBUG):
    kwargs = {"echo": echo}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=3600)
    return create_async_engine(url, **kwargs)


if not ALEMBIC_MODE:
    engine = build_engine()

    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
else:
    engine = None
    async_session_factory = None


async def init_db():
    """Initialize database (create tables when AUTO_CREATE_TABLES is set)"""
    if not settings.AUTO_CREATE_TABLES:
        return
    async with engine.begin() as conn:
        # Import all models here to ensure they're registered
        from app.infrastructure.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections"""
    await engine.dispose()
