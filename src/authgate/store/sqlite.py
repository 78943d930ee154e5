# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
SQLite store backed by aiosqlite.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

from authgate.errors import StoreConnectionError, StoreError, UserExistsError
from authgate.store.base import BaseStore, SessionRecord, UserRecord

logger = structlog.get_logger()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    password_salt TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    username TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_created ON sessions(created_at);
"""


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_ts(value: str) -> datetime:
    return _utc(datetime.fromisoformat(value))


class SQLiteStore(BaseStore):
    """
    Embedded store for users and sessions.

    One long-lived connection is shared by every request; SQLite provides
    the consistency, so no application-level locking is done here.
    """

    def __init__(self, path: str, connect_timeout: float = 5.0):
        self.path = str(path)
        self.connect_timeout = connect_timeout
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        if self._conn is not None:
            return

        try:
            if self.path != ":memory:":
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = await asyncio.wait_for(aiosqlite.connect(self.path), timeout=self.connect_timeout)
        except (asyncio.TimeoutError, sqlite3.Error, OSError) as e:
            logger.error("store_connection_failed", path=self.path, error=str(e))
            raise StoreConnectionError(f"Cannot open store at {self.path}: {e}") from e

        try:
            conn.row_factory = aiosqlite.Row
            await conn.executescript(_SCHEMA)
            await conn.commit()
            await conn.execute("SELECT 1")
        except sqlite3.Error as e:
            await conn.close()
            logger.error("store_connection_failed", path=self.path, error=str(e))
            raise StoreConnectionError(f"Cannot initialise store at {self.path}: {e}") from e

        self._conn = conn
        logger.info("store_connected", path=self.path)

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("store_closed", path=self.path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Store is not connected")
        return self._conn

    # ------------------ Users ------------------

    async def count_users(self) -> int:
        try:
            cursor = await self.conn.execute("SELECT COUNT(*) FROM users")
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return int(row[0]) if row else 0

    async def get_user(self, username: str) -> Optional[UserRecord]:
        try:
            cursor = await self.conn.execute(
                "SELECT * FROM users WHERE username = ?",
                (username,),
            )
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

        if not row:
            return None
        return UserRecord(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            password_salt=row["password_salt"],
            created_at=_parse_ts(row["created_at"]),
        )

    async def insert_user(self, username: str, password_hash: str, password_salt: str) -> UserRecord:
        created_at = datetime.now(timezone.utc)
        try:
            cursor = await self.conn.execute(
                """
                INSERT INTO users (username, password_hash, password_salt, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (username, password_hash, password_salt, created_at.isoformat()),
            )
            await self.conn.commit()
        except sqlite3.IntegrityError as e:
            raise UserExistsError(username) from e
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

        return UserRecord(
            id=cursor.lastrowid,
            username=username,
            password_hash=password_hash,
            password_salt=password_salt,
            created_at=created_at,
        )

    # ------------------ Sessions ------------------

    async def insert_session(self, token: str, username: str, created_at: datetime) -> None:
        try:
            await self.conn.execute(
                "INSERT INTO sessions (token, username, created_at) VALUES (?, ?, ?)",
                (token, username, _utc(created_at).isoformat()),
            )
            await self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def get_session(self, token: str) -> Optional[SessionRecord]:
        try:
            cursor = await self.conn.execute(
                "SELECT * FROM sessions WHERE token = ?",
                (token,),
            )
            row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

        if not row:
            return None
        return SessionRecord(
            token=row["token"],
            username=row["username"],
            created_at=_parse_ts(row["created_at"]),
        )

    async def delete_session(self, token: str) -> None:
        try:
            await self.conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            await self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e

    async def purge_sessions(self, older_than: datetime) -> int:
        try:
            cursor = await self.conn.execute(
                "DELETE FROM sessions WHERE created_at < ?",
                (_utc(older_than).isoformat(),),
            )
            await self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(str(e)) from e
        return cursor.rowcount or 0
