import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from authgate.app import create_app
from authgate.config import DEFAULT_SEED_PATH, Settings
from authgate.store import SQLiteStore


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway database and the packaged demo accounts."""
    return Settings(
        database_path=str(tmp_path / "data" / "authgate.db"),
        secret_key="test-secret-key",
        seed_path=DEFAULT_SEED_PATH,
        log_level="WARNING",
    )


@pytest_asyncio.fixture()
async def store(tmp_path: Path):
    s = SQLiteStore(str(tmp_path / "store.db"), connect_timeout=5.0)
    await s.connect()
    try:
        yield s
    finally:
        await s.close()


@pytest.fixture()
def client(settings):
    # Entering the client runs the lifespan: connect, purge, seed.
    with TestClient(create_app(settings)) as c:
        yield c


def login(client: TestClient, username: str, password: str, **extra):
    return client.post(
        "/login",
        data={"username": username, "password": password, **extra},
        follow_redirects=False,
    )
