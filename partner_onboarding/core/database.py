"""Database engine and session management.

Services own their commits: a status transition is committed before its
notification is delivered, so the request-scoped session below only
commits whatever is still pending when the endpoint returns. Any error
rolls the open transaction back.
"""

import logging
import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings, get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _connect_args(settings: Settings) -> dict:
    """asyncpg options; pooled cloud Postgres (pgbouncer) needs SSL and no statement cache."""
    if not settings.database_ssl:
        return {}

    ssl_context = ssl.create_default_context()
    ssl_context.check_hostname = False
    ssl_context.verify_mode = ssl.CERT_NONE
    logger.info("Using SSL for database connection with pgbouncer compatibility")
    return {
        "ssl": ssl_context,
        "prepared_statement_cache_size": 0,
        "statement_cache_size": 0,
    }


def create_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url_async,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
        connect_args=_connect_args(settings),
    )


engine = create_engine(settings)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Results stay readable after a service commits
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
            logger.debug("Request transaction committed")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session for scripts and jobs outside a request."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Production databases are migrated instead."""
    from ..models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
