"""Database engines, sessions and shared model mixins.

The API process uses the pooled async engine. Celery workers use the sync
engine for the SQL maintenance calls and a fresh async engine per
generation run (create_task_engine).
"""

import uuid

from sqlalchemy import Column, DateTime, func, create_engine
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import get_settings

settings = get_settings()


def to_sync_url(database_url: str) -> str:
    """Swap the asyncpg driver for psycopg2, keeping credentials and host."""
    return database_url.replace("postgresql+asyncpg://", "postgresql+psycopg2://", 1)


def create_task_engine() -> AsyncEngine:
    """Async engine for one Celery task invocation.

    Each task runs its own event loop via asyncio.run() and disposes the
    engine before the loop closes, so pooled connections never outlive it.
    The pool caps connections for a batch: users beyond pool_size +
    max_overflow wait for a free connection instead of opening their own.
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
    )


# Async engine for the API; one concurrent batch can check out a session per user
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_timeout=settings.db_pool_timeout,
    pool_pre_ping=True,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Sync engine for the maintenance tasks (one statement per task)
sync_engine = create_engine(to_sync_url(settings.database_url), echo=settings.debug, pool_size=2, pool_pre_ping=True)

SyncSessionLocal = sessionmaker(bind=sync_engine, autoflush=False)


class Base(DeclarativeBase):
    """Declarative base. Every model names its table explicitly."""


class TimestampMixin:
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDMixin:
    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
