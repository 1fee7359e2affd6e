"""
InsydTracker Database Session Management

Async SQLAlchemy engine and session factory. Workers build short-lived
engines through make_engine so each asyncio.run() gets its own pool.
"""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from core.config import get_settings

settings = get_settings()


def make_engine(database_url: str | None = None, pooled: bool = True) -> AsyncEngine:
    url = make_url(database_url or settings.database_url)
    kwargs: dict = {"echo": settings.database_echo}
    if not pooled:
        kwargs["poolclass"] = NullPool
    elif not url.drivername.startswith("sqlite"):
        # SQLite drivers reject queue-pool sizing
        kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
    return create_async_engine(url, **kwargs)


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine()
AsyncSessionLocal = make_sessionmaker(engine)


class Base(DeclarativeBase):
    """Declarative base for all SQLAlchemy models."""
    pass
