"""SQLAlchemy async engine helpers and the index-store adapter.

The repository talks to the index through the :class:`IndexStore` protocol,
which executes SQLAlchemy Core statements.  :class:`SQLAlchemyIndexStore`
implements it on top of any async engine (ClickHouse, SQLite, ...).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool, Pool
from sqlalchemy.sql.base import Executable

from cloudevent.core.config import Settings
from cloudevent.core.errors import StoreError

from .models import metadata

logger = logging.getLogger(__name__)


class IndexStore(Protocol):
    """Executes queries and writes against the cloud event index."""

    async def query(self, statement: Executable) -> Sequence[Sequence[Any]]:
        """Run a SELECT and return every row."""
        ...

    async def execute(self, statement: Executable) -> None:
        """Run a write statement."""
        ...


def create_engine(
    url: str,
    *,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
    echo: bool = False,
    use_null_pool: bool = False,
    poolclass: type[Pool] | None = None,
) -> AsyncEngine:
    """Create and return a new SQLAlchemy :class:`AsyncEngine`.

    Args:
        url: Async database URL, e.g. ``sqlite+aiosqlite:///index.db``.
        pool_size: Number of persistent connections to keep in the pool.
        max_overflow: Maximum additional connections beyond *pool_size*.
        pool_recycle: Seconds after which a connection is recycled.
        echo: If ``True``, log all emitted SQL statements.
        use_null_pool: If ``True``, disable connection pooling entirely.
        poolclass: Explicit pool class.  Sizing arguments are ignored when set.

    Returns:
        A configured :class:`AsyncEngine` instance.
    """
    pool_kwargs: dict[str, Any] = {}
    if use_null_pool:
        pool_kwargs["poolclass"] = NullPool
    elif poolclass is not None:
        pool_kwargs["poolclass"] = poolclass
    else:
        pool_kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_recycle=pool_recycle,
        )

    engine = create_async_engine(url, echo=echo, **pool_kwargs)
    logger.info("Created async engine for %s", url.split("@")[-1])
    return engine


async def create_all(engine: AsyncEngine) -> None:
    """Create the cloud event table if it does not exist.

    Production schemas are managed by migrations; this is for development
    and tests.
    """
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    logger.info("Cloud event index table created / verified.")


class SQLAlchemyIndexStore:
    """:class:`IndexStore` backed by an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> SQLAlchemyIndexStore:
        engine = create_engine(
            settings.index_url,
            pool_size=settings.index_pool_size,
            echo=settings.index_echo,
        )
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def query(self, statement: Executable) -> list[tuple[Any, ...]]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(statement)
                return [tuple(row) for row in result.all()]
        except SQLAlchemyError as exc:
            raise StoreError(f"index query failed: {exc}", operation="query") from exc

    async def execute(self, statement: Executable) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.execute(statement)
        except SQLAlchemyError as exc:
            raise StoreError(f"index write failed: {exc}", operation="execute") from exc

    async def dispose(self) -> None:
        await self._engine.dispose()
        logger.info("Index engine disposed.")
