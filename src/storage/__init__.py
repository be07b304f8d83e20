"""Storage layer: asyncpg connection pool shared by the analytics readers."""

from src.storage.database import Database, close_database, get_database

__all__ = ["Database", "close_database", "get_database"]
