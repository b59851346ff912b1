"""Async engine and sessions for the run history store."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config.settings import settings
from data.schema import Base


def make_engine(url: str) -> AsyncEngine:
    # An in-memory SQLite database lives as long as its single connection.
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(url, poolclass=StaticPool)
    return create_async_engine(url, echo=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False)


engine = make_engine(settings.DATABASE_URL)
async_session_factory = make_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create the audit tables if missing."""
    bind = bind or engine
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if bind.dialect.name == "sqlite" and bind.url.database not in (None, "", ":memory:"):
            await conn.execute(text("PRAGMA journal_mode=WAL"))


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession]:
    """Session that commits on clean exit and rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
