"""
StackQA Backend — Database Session Management
==============================================

What:  Async SQLAlchemy engine, session factory, declarative base, and the
       FastAPI session dependency.
How:   One pooled async engine per process. Each request gets its own session
       which commits when the handler returns and rolls back if it raises.
       Long-lived consumers (live subscription streams) open short sessions
       from `async_session_factory` per push instead of holding one open.
Who:   Route handlers via Depends(get_db_session); live streams; Alembic.

Connection Pooling:
    pool_size=20, max_overflow=10  → at most 30 connections per worker
    pool_pre_ping                  → stale connections are replaced transparently
    pool_recycle=3600              → connections older than an hour are recycled
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential_jitter,
)

from stackqa.config import settings

logger = logging.getLogger(__name__)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: services commit before publishing live updates and
# still read attributes of the rows they just wrote.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every model registers on this shared metadata, which Alembic reads for
    --autogenerate.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Lifecycle:
        1. Open a session from the factory
        2. Yield it to the route handler
        3. Commit on success (a no-op when the service already committed)
        4. Roll back on any exception, then re-raise for the global handlers
        5. Always close, returning the connection to the pool
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def ping_database() -> None:
    """Run SELECT 1 on a pooled connection; raises on failure."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def wait_for_database() -> bool:
    """
    Check the database at startup with exponential backoff.

    What:    Retries `ping_database` up to `db_connect_attempts` times.
    When:    Called once from the lifespan handler.
    Returns: True once the database answers, False if every attempt failed.
             Never raises: a cold database must not keep the API (and /health)
             from coming up.
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.db_connect_attempts),
            wait=wait_exponential_jitter(initial=1, max=settings.db_connect_max_wait, jitter=1),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await ping_database()
    except Exception as e:
        logger.error(
            "Database unreachable after %d attempts: %s",
            settings.db_connect_attempts,
            str(e),
        )
        return False
    return True


async def dispose_engine() -> None:
    """Close every pooled connection. Called on application shutdown."""
    await engine.dispose()
