"""Catalog store engine and request sessions.

The engine is built from :class:`Settings`. Server databases get a
sized connection pool, and asyncpg connections a per-command timeout so
a stuck query fails as an unavailable store instead of holding the
request open.
"""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shopcatalog.infrastructure.config import Settings, settings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Declarative base of the catalog tables."""


def engine_options(config: Settings) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``.

    Args:
        config: Application settings.

    Returns:
        Engine options; pool sizing is left out for SQLite.
    """
    url = make_url(config.database_url)
    options: dict[str, Any] = {"echo": config.debug, "pool_pre_ping": True}
    if url.get_backend_name() == "sqlite":
        return options

    options.update(
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
    )
    if url.get_driver_name() == "asyncpg" and config.db_command_timeout:
        options["connect_args"] = {"command_timeout": config.db_command_timeout}
    return options


def build_engine(config: Settings) -> AsyncEngine:
    """Create the catalog store engine from settings."""
    return create_async_engine(config.database_url, **engine_options(config))


engine = build_engine(settings)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for one request.

    Changes are committed when the request succeeds and rolled back
    when it raises.

    Yields:
        AsyncSession bound to the catalog store.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.warning("Catalog session rolled back", error_type=type(e).__name__)
            raise
        await session.commit()
