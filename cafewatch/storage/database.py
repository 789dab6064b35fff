"""
PostgreSQL connection management.

Uses asyncpg for the cursor, source registry and notification history
tables. There is no module-level instance: the CLI and the API build one
Database and pass it to the repositories that need it.
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from cafewatch.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Async PostgreSQL connection manager.

    Usage:
        async with Database() as db:
            await db.ensure_schema([MONITOR_STATES_DDL])
            row = await db.fetchrow("SELECT ...", source_id)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float = 30.0,
    ):
        """
        Initialize database connection manager.

        Args:
            database_url: PostgreSQL connection URL
            min_size: Minimum pool size
            max_size: Maximum pool size
            command_timeout: Per-statement timeout in seconds
        """
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
            logger.info(
                "Database connected (pool: %d-%d)", self._min_size, self._max_size
            )
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            raise

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Start a transaction.

        Usage:
            async with db.transaction() as conn:
                await conn.execute("DELETE FROM ...")
                await conn.execute("INSERT INTO ...")
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def ensure_schema(self, statements: Iterable[str]) -> None:
        """Run idempotent DDL statements in one transaction."""
        async with self.transaction() as conn:
            for statement in statements:
                await conn.execute(statement)

    async def execute(self, query: str, *args: Any) -> str:
        """
        Execute a query without returning results.

        Returns:
            Status string from PostgreSQL (e.g. "DELETE 1")
        """
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """
        Check if database is healthy.

        Returns:
            True if database is accessible
        """
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception:
            return False


def rows_affected(status: str) -> int:
    """Parse the row count out of an asyncpg status string ("DELETE 3" -> 3)."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError, IndexError):
        return 0
