# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Registers the demo accounts on first start."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Tuple

import structlog
import yaml

from authgate.auth.users import register
from authgate.errors import AuthGateError
from authgate.store.base import BaseStore

logger = structlog.get_logger()


def load_demo_accounts(path: Path) -> List[Tuple[str, str]]:
    """Read ``users: [{username, password}]`` from a YAML file."""
    if not path.exists():
        return []
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error("seed_failed", path=str(path), error=str(e))
        return []
    users = (raw.get("users") or []) if isinstance(raw, dict) else []
    out: List[Tuple[str, str]] = []
    for entry in users:
        if not isinstance(entry, dict):
            continue
        username = str(entry.get("username") or "").strip()
        password = str(entry.get("password") or "")
        if username and password:
            out.append((username, password))
    return out


async def seed_users_if_empty(store: BaseStore, accounts: Iterable[Tuple[str, str]]) -> int:
    """Register ``accounts`` only if the store holds no users.

    Returns the number of accounts registered. A failing account is logged
    and skipped.
    """
    count = await store.count_users()
    if count > 0:
        logger.info("seed_skipped", existing_users=count)
        return 0

    registered = 0
    for username, password in accounts:
        try:
            await register(store, username, password)
        except (AuthGateError, ValueError) as e:
            logger.error("seed_user_failed", username=username, error=str(e))
            continue
        registered += 1
        logger.info("seed_user_registered", username=username)

    logger.info("seed_completed", registered=registered)
    return registered
