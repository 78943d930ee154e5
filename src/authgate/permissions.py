# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import structlog
from fastapi import HTTPException, Request

from authgate.errors import StoreError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str


async def load_user_from_request(request: Request) -> Optional[CurrentUser]:
    """Resolve the session cookie to a user that still exists in the store."""
    sessions = request.app.state.sessions
    store = request.app.state.store
    token = request.cookies.get(request.app.state.settings.cookie_name, "")
    if not token:
        return None
    try:
        username = await sessions.resolve(token)
        if not username:
            return None
        u = await store.get_user(username)
    except StoreError as e:
        logger.warning("session_resolution_failed", error=str(e))
        return None
    if not u:
        # Session outlived its user.
        return None
    return CurrentUser(id=u.id, username=u.username)


def current_user_optional(request: Request) -> Optional[CurrentUser]:
    return getattr(request.state, "user", None)


def require_user(request: Request) -> CurrentUser:
    u = current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"/login?next={quote(next_url, safe='/')}"
    raise HTTPException(status_code=303, headers={"Location": loc})


def require_api_user(request: Request) -> CurrentUser:
    u = current_user_optional(request)
    if u:
        return u
    raise HTTPException(status_code=401, detail="Not authenticated")


def safe_next(next_url: Optional[str]) -> str:
    """Only allow local redirect targets."""
    n = (next_url or "").strip()
    if not n.startswith("/") or n.startswith("//") or "\\" in n:
        return "/"
    return n
