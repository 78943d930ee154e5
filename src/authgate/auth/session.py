# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from authgate.store.base import BaseStore

SESSION_SALT = "authgate.session.v1"
TOKEN_BYTES = 32


class SessionManager:
    """Server-side sessions keyed by a random token.

    The token is stored in the ``sessions`` table; the client only ever sees
    it signed, so a forged cookie is rejected before the store is queried.
    """

    def __init__(self, store: BaseStore, secret_key: str, *, max_age: int = 28800, secure: bool = False):
        if not secret_key:
            raise RuntimeError("Missing session secret key")
        self.store = store
        self.max_age = max_age
        self.secure = secure
        self._serializer = URLSafeTimedSerializer(secret_key=secret_key, salt=SESSION_SALT)

    def _unsign(self, cookie_value: str) -> Optional[str]:
        if not cookie_value:
            return None
        try:
            token = self._serializer.loads(cookie_value, max_age=self.max_age)
        except BadSignature:
            return None
        return token if isinstance(token, str) and token else None

    async def create(self, username: str) -> str:
        """Store a new session for ``username`` and return the signed cookie value."""
        token = secrets.token_urlsafe(TOKEN_BYTES)
        await self.store.insert_session(token, username, datetime.now(timezone.utc))
        return self._serializer.dumps(token)

    async def resolve(self, cookie_value: str) -> Optional[str]:
        token = self._unsign(cookie_value)
        if not token:
            return None
        sess = await self.store.get_session(token)
        if not sess:
            return None
        if sess.created_at + timedelta(seconds=self.max_age) <= datetime.now(timezone.utc):
            await self.store.delete_session(token)
            return None
        return sess.username

    async def destroy(self, cookie_value: str) -> None:
        token = self._unsign(cookie_value)
        if token:
            await self.store.delete_session(token)

    async def purge_expired(self) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=self.max_age)
        return await self.store.purge_sessions(cutoff)

    def cookie_settings(self) -> dict:
        return {"httponly": True, "samesite": "lax", "secure": self.secure}
