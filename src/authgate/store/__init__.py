"""
Store layer for authgate.

SQLite (via aiosqlite) is the only backend.
"""

from .base import BaseStore, SessionRecord, UserRecord
from .sqlite import SQLiteStore

__all__ = [
    "BaseStore",
    "SessionRecord",
    "UserRecord",
    "SQLiteStore",
    "get_store",
]


def get_store(settings) -> BaseStore:
    """Build the configured store. It is not connected yet."""
    return SQLiteStore(settings.database_path, connect_timeout=settings.store_connect_timeout)
