# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from starlette.concurrency import run_in_threadpool

from authgate.auth.passwords import DUMMY_HASH, hash_password, verify_password
from authgate.store.base import BaseStore, UserRecord

# Shown to the user for every failed login; never says which part was wrong.
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"

REASON_NOT_FOUND = "not found"
REASON_INVALID = "invalid credentials"


@dataclass(frozen=True)
class VerifyResult:
    ok: bool
    username: Optional[str] = None
    reason: Optional[str] = None

    @property
    def message(self) -> str:
        return "" if self.ok else INVALID_CREDENTIALS_MESSAGE


async def register(store: BaseStore, username: str, password: str) -> UserRecord:
    """Hash ``password`` and insert a new user.

    Raises ``ValueError`` for an empty username or password and
    ``UserExistsError`` when the username is taken.
    """
    u = (username or "").strip()
    if not u:
        raise ValueError("Empty username")
    password_hash, salt_hex = await run_in_threadpool(hash_password, password)
    return await store.insert_user(u, password_hash, salt_hex)


async def verify(store: BaseStore, username: str, password: str) -> VerifyResult:
    u = (username or "").strip()
    user = await store.get_user(u) if u else None
    if not user:
        await run_in_threadpool(verify_password, DUMMY_HASH, password or "")
        return VerifyResult(ok=False, reason=REASON_NOT_FOUND)
    if not await run_in_threadpool(verify_password, user.password_hash, password):
        return VerifyResult(ok=False, reason=REASON_INVALID)
    return VerifyResult(ok=True, username=user.username)
