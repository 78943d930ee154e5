# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

import structlog

logger = structlog.get_logger()

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_SEED_PATH = BASE_DIR / "data" / "demo_users.yml"

_TRUTHY = {"1", "true", "yes", "y"}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def server_options() -> Tuple[str, int, bool]:
    """Host, port and reload flag for the uvicorn runner."""
    host = os.getenv("AUTHGATE_HOST", "0.0.0.0")
    port = int(os.getenv("PORT") or os.getenv("AUTHGATE_PORT") or "3000")
    return host, port, _env_bool("AUTHGATE_RELOAD", "false")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False
    database_path: str = "data/authgate.db"
    store_connect_timeout: float = 5.0
    secret_key: str = field(default_factory=lambda: secrets.token_urlsafe(32), repr=False)
    cookie_name: str = "authgate_session"
    cookie_secure: bool = False
    session_max_age: int = 28800  # 8 hours
    seed_path: Path = DEFAULT_SEED_PATH
    seed_on_startup: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Without AUTHGATE_SECRET_KEY (or SECRET_KEY) a random key is generated,
        so sessions do not survive a restart.
        """
        secret = os.getenv("AUTHGATE_SECRET_KEY") or os.getenv("SECRET_KEY")
        if not secret:
            logger.warning("secret_key_missing", detail="using a random per-process key")
            secret = secrets.token_urlsafe(32)

        host, port, reload = server_options()
        return cls(
            host=host,
            port=port,
            reload=reload,
            database_path=os.getenv("AUTHGATE_DATABASE_PATH", "data/authgate.db"),
            store_connect_timeout=float(os.getenv("AUTHGATE_STORE_TIMEOUT", "5")),
            secret_key=secret,
            cookie_name=os.getenv("AUTHGATE_COOKIE_NAME", "authgate_session"),
            cookie_secure=_env_bool("AUTHGATE_COOKIE_SECURE", "false"),
            session_max_age=int(os.getenv("AUTHGATE_SESSION_MAX_AGE", "28800")),
            seed_path=Path(os.getenv("AUTHGATE_SEED_PATH", str(DEFAULT_SEED_PATH))),
            seed_on_startup=_env_bool("AUTHGATE_SEED", "true"),
            log_level=os.getenv("AUTHGATE_LOG_LEVEL", "INFO").upper(),
        )
