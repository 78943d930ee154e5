#!/usr/bin/env python3
from __future__ import annotations

import asyncio
from getpass import getpass

from authgate.auth.users import register
from authgate.config import Settings
from authgate.errors import UserExistsError
from authgate.store import get_store


async def _create(username: str, password: str) -> None:
    settings = Settings.from_env()
    store = get_store(settings)
    await store.connect()
    try:
        user = await register(store, username, password)
    finally:
        await store.close()
    print(f"OK -> {user.username} ({settings.database_path})")


def main() -> None:
    username = input("Username: ").strip()
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        asyncio.run(_create(username, pw1))
    except (UserExistsError, ValueError) as e:
        raise SystemExit(str(e))


if __name__ == "__main__":
    main()
