"""
PostgreSQL connection management for the analytics stores.

The aggregation engine only reads: the rollup table, the raw event tables
and the dimension tables. Pooled sessions are opened read-only, so a stray
write fails at the server instead of touching production data.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from src.config.settings import get_settings

logger = logging.getLogger(__name__)


class Database:
    """
    Async PostgreSQL pool wrapper exposing the read calls the stores use.

    Usage:
        async with Database() as db:
            rows = await db.fetch("SELECT ... FROM daily_brand_stats WHERE ...")
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
        read_only: bool | None = None,
    ):
        """
        Args:
            database_url: PostgreSQL connection URL
            min_size: Minimum pool size
            max_size: Maximum pool size
            command_timeout: Server-side statement timeout in seconds
            read_only: Open sessions with ``default_transaction_read_only``
        """
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout or settings.db_command_timeout
        self._read_only = settings.db_read_only if read_only is None else read_only
        self._application_name = settings.otel_service_name

        self._pool: asyncpg.Pool | None = None

    @property
    def server_settings(self) -> dict[str, str]:
        """Session settings applied to every pooled connection."""
        server_settings = {"application_name": self._application_name}
        if self._read_only:
            server_settings["default_transaction_read_only"] = "on"
        return server_settings

    async def connect(self) -> None:
        """Create the connection pool."""
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                server_settings=self.server_settings,
            )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error("Failed to connect to database: %s", e)
            raise

        logger.info(
            "Database connected (pool: %d-%d, read_only=%s)",
            self._min_size, self._max_size, self._read_only,
        )

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

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Execute a query and fetch all rows."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Execute a query and fetch the first row, or None."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and fetch the first column of the first row."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the pool can run ``SELECT 1``."""
        try:
            result = await self.fetchval("SELECT 1")
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError) as e:
            logger.warning("Database health check failed: %s", e)
            return False
        return result == 1


# Global database instance
_database: Database | None = None


async def get_database() -> Database:
    """
    Get the process-wide Database, connecting it on first use.

    Returns:
        Connected Database instance
    """
    global _database

    if _database is None:
        database = Database()
        await database.connect()
        _database = database

    return _database


async def close_database() -> None:
    """Close the process-wide Database."""
    global _database

    if _database is not None:
        await _database.close()
        _database = None
