"""Database wiring for the booking store.

One async engine per process. A request gets one ``AsyncSession`` whose
transaction spans the whole engine operation, so a booking's conflict check
and the write it guards commit together or not at all.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stayengine.config import settings
from stayengine.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)


def build_engine(url: str | None = None, **options) -> AsyncEngine:
    """Async engine for ``url``, the configured database when omitted."""
    options.setdefault("echo", settings.debug)
    options.setdefault("pool_pre_ping", True)
    return create_async_engine(url or settings.async_database_url, **options)


engine = build_engine(pool_size=10, max_overflow=20)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for homestays, pricing policies, availability and bookings."""


class TimestampMixin:
    """Server-stamped ``created_at``; ``updated_at`` moves on every ORM update."""

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())


class UUIDPrimaryKeyMixin:
    # Generated client-side so a booking's id is known before the first flush.
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


async def commit_session(session: AsyncSession) -> None:
    """Commit, reporting a lost connection as ``PersistenceUnavailable``."""
    try:
        await session.commit()
    except (OperationalError, InterfaceError) as exc:
        logger.error("Commit failed, persistence store unavailable: %s", exc)
        raise PersistenceUnavailable("Persistence store unavailable during commit") from exc


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; commits on success, rolls back on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await commit_session(session)
        except Exception:
            await session.rollback()
            raise
