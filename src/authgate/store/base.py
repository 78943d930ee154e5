# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Store interface and records."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    password_hash: str
    password_salt: str
    created_at: datetime

    def public_dict(self) -> dict:
        """Fields that are safe to hand to the client."""
        return {
            "id": self.id,
            "username": self.username,
            "identifier": self.username,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class SessionRecord:
    token: str
    username: str
    created_at: datetime


class BaseStore(ABC):
    """Async store holding users and sessions.

    Implementations must be connected with ``connect()`` before any other
    call. Lookups return ``None`` for missing records; write failures raise
    ``StoreError`` (or ``UserExistsError`` for duplicate usernames).
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def count_users(self) -> int:
        ...

    @abstractmethod
    async def get_user(self, username: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    async def insert_user(self, username: str, password_hash: str, password_salt: str) -> UserRecord:
        ...

    @abstractmethod
    async def insert_session(self, token: str, username: str, created_at: datetime) -> None:
        ...

    @abstractmethod
    async def get_session(self, token: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    async def delete_session(self, token: str) -> None:
        ...

    @abstractmethod
    async def purge_sessions(self, older_than: datetime) -> int:
        """Delete sessions created before ``older_than``; return how many."""
        ...
