"""
Dependency injection for FastAPI endpoints.
"""

import asyncpg

from src.analytics.config import AnalyticsConfig
from src.analytics.errors import StoreUnavailable
from src.analytics.service import AnalyticsService
from src.storage.database import Database, close_database
from src.storage.database import get_database as _get_shared_database

# Global instances (initialized on first request)
_analytics_service: AnalyticsService | None = None


async def get_database() -> Database:
    """
    Get database instance.

    Shares the process-wide pool, connecting it on first use.

    Raises:
        StoreUnavailable: If the pool cannot connect
    """
    try:
        return await _get_shared_database()
    except (asyncpg.PostgresError, OSError) as e:
        raise StoreUnavailable("database", "connect", str(e) or type(e).__name__) from e


async def get_analytics_service() -> AnalyticsService:
    """
    Get analytics service instance.

    Creates a singleton service whose readers share the database pool.
    """
    global _analytics_service

    if _analytics_service is None:
        database = await get_database()
        _analytics_service = AnalyticsService.from_database(
            database, config=AnalyticsConfig()
        )

    return _analytics_service


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _analytics_service

    _analytics_service = None
    await close_database()
