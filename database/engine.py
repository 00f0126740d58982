"""
Marketplace Store - Async Engine and Sessions.

============================================================
PURPOSE
============================================================
Connection handling for the marketplace store read by the
provider metrics aggregator. Access is read-only: sessions
never commit.

============================================================
ENVIRONMENT
============================================================
- DATABASE_URL: postgres URL; plain ``postgresql://`` URLs
  are switched to the asyncpg driver
- DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW,
  DATABASE_POOL_TIMEOUT, DATABASE_POOL_RECYCLE: pool tuning
- DATABASE_ECHO: log SQL when "true"

Credentials never reach the logs: only the host part of the
URL is logged.

============================================================
"""

import os
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Shared by every ORM model of the store
Base = declarative_base()


# =============================================================
# SETTINGS
# =============================================================

DEFAULT_DATABASE_URL = "postgresql+asyncpg://localhost:5432/marketplace"


def _host_only(url: str) -> str:
    return url.split("@")[-1]


def get_database_url() -> str:
    """Async database URL from ``DATABASE_URL``."""
    url = os.getenv("DATABASE_URL")

    if not url:
        logger.warning(f"DATABASE_URL not set, using default: {_host_only(DEFAULT_DATABASE_URL)}")
        return DEFAULT_DATABASE_URL

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool sizing for the async engine."""

    size: int = 10
    max_overflow: int = 20
    timeout_seconds: int = 30
    recycle_seconds: int = 1800
    echo: bool = False

    @classmethod
    def from_env(cls) -> "PoolSettings":
        """Read pool settings, keeping defaults for unset variables."""
        defaults = cls()

        def env_int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or not raw.strip():
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"{name} must be an integer, got '{raw}'") from None

        return cls(
            size=env_int("DATABASE_POOL_SIZE", defaults.size),
            max_overflow=env_int("DATABASE_MAX_OVERFLOW", defaults.max_overflow),
            timeout_seconds=env_int("DATABASE_POOL_TIMEOUT", defaults.timeout_seconds),
            recycle_seconds=env_int("DATABASE_POOL_RECYCLE", defaults.recycle_seconds),
            echo=os.getenv("DATABASE_ECHO", "false").strip().lower() == "true",
        )


# =============================================================
# ENGINE
# =============================================================

_engine: Optional[AsyncEngine] = None
_SessionFactory: Optional[async_sessionmaker] = None


def create_database_engine(settings: Optional[PoolSettings] = None) -> AsyncEngine:
    """
    Create the process-wide async engine, or return the existing one.

    Args:
        settings: Pool settings (read from the environment if omitted)

    Returns:
        SQLAlchemy AsyncEngine
    """
    global _engine

    if _engine is not None:
        return _engine

    settings = settings or PoolSettings.from_env()
    url = get_database_url()

    logger.info(f"Opening async engine to {_host_only(url)} (pool size {settings.size})")

    _engine = create_async_engine(
        url,
        pool_size=settings.size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.timeout_seconds,
        pool_recycle=settings.recycle_seconds,
        pool_pre_ping=True,
        echo=settings.echo,
    )
    return _engine


def get_engine() -> AsyncEngine:
    return _engine if _engine is not None else create_database_engine()


def get_session_factory() -> async_sessionmaker:
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = async_sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionFactory


# =============================================================
# SESSIONS
# =============================================================


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Read session, closed on exit.

    Usage:
        async with get_db_session() as session:
            repository = ProviderMetricsRepository(session)
            providers = await repository.list_providers()
            snapshots = await repository.fetch_snapshots(providers, now)

    A database error rolls the session back and propagates.
    """
    session = get_session_factory()()
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Database error, rolling back: {e}")
        await session.rollback()
        raise
    finally:
        await session.close()


async def verify_database_connection() -> bool:
    """
    Run ``SELECT 1`` against the store.

    Raises:
        DatabaseConnectionError: If the store cannot be reached
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e

    logger.info("Database connection verified")
    return True


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _SessionFactory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _SessionFactory = None


class DatabaseConnectionError(Exception):
    """Raised when the database cannot be reached."""
    pass
