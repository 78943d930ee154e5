from dataclasses import replace
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from authgate.app import create_app
from authgate.auth.users import INVALID_CREDENTIALS_MESSAGE
from authgate.config import Settings
from authgate.errors import StoreConnectionError, StoreError
from authgate.store import SQLiteStore

from conftest import login


async def _delete_user(store, username):
    await store.conn.execute("DELETE FROM users WHERE username = ?", (username,))
    await store.conn.commit()


def test_login_page_is_public(client):
    r = client.get("/login")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert 'name="password"' in r.text


def test_login_page_shows_info_message(client):
    r = client.get("/login", params={"info": INVALID_CREDENTIALS_MESSAGE})
    assert INVALID_CREDENTIALS_MESSAGE in r.text


def test_static_assets_are_public(client):
    r = client.get("/static/style.css")
    assert r.status_code == 200


@pytest.mark.parametrize("path", ["/", "/private"])
def test_protected_pages_redirect_to_login(client, path):
    r = client.get(path, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"].startswith("/login")


def test_user_endpoint_rejects_anonymous(client):
    r = client.get("/user")
    assert r.status_code == 401
    assert r.json() == {"detail": "Not authenticated"}


def test_login_success_sets_httponly_cookie(client, settings):
    r = login(client, "paul", "paul")
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    set_cookie = r.headers["set-cookie"]
    assert set_cookie.startswith(settings.cookie_name + "=")
    assert "httponly" in set_cookie.lower()


@pytest.mark.parametrize("username,password", [("paul", "wrong"), ("nobody", "paul"), ("", "")])
def test_login_failure_is_generic(client, settings, username, password):
    r = login(client, username, password)
    assert r.status_code == 303
    loc = urlparse(r.headers["location"])
    assert loc.path == "/login"
    assert parse_qs(loc.query)["info"] == [INVALID_CREDENTIALS_MESSAGE]
    assert settings.cookie_name not in client.cookies
    assert client.get("/user").status_code == 401


def test_login_accepts_json_body(client):
    r = client.post("/login", json={"username": "joy", "password": "joy"}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/"
    assert client.get("/user").json()["user"]["username"] == "joy"


def test_login_honours_local_next_only(client):
    r = login(client, "ray", "ray", next="/private")
    assert r.headers["location"] == "/private"

    r = login(client, "ray", "ray", next="https://evil.example/")
    assert r.headers["location"] == "/"


def test_end_to_end_login_user_logout(client, settings):
    r = login(client, "paul", "paul")
    assert r.headers["location"] == "/"

    r = client.get("/user")
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["username"] == "paul"
    assert body["user"]["identifier"] == "paul"
    assert "password_hash" not in body["user"]
    assert "password_salt" not in body["user"]

    assert "paul" in client.get("/").text
    assert client.get("/private").status_code == 200

    r = client.get("/logout")
    assert r.status_code == 200
    assert "logged out" in r.text.lower()
    assert settings.cookie_name not in client.cookies

    assert client.get("/user").status_code == 401
    assert client.get("/", follow_redirects=False).status_code == 303


def test_old_cookie_is_dead_after_logout(client, settings):
    login(client, "paul", "paul")
    cookie = client.cookies.get(settings.cookie_name)
    client.get("/logout")

    client.cookies.set(settings.cookie_name, cookie)
    assert client.get("/user").status_code == 401


def test_logout_clears_cookie_when_destroy_fails(client, settings, monkeypatch):
    login(client, "paul", "paul")

    async def boom(token):
        raise StoreError("disk on fire")

    monkeypatch.setattr(client.app.state.sessions, "destroy", boom)
    r = client.get("/logout")
    assert r.status_code == 200
    assert settings.cookie_name not in client.cookies


def test_session_of_deleted_user_is_unauthenticated(client):
    login(client, "paul", "paul")
    assert client.get("/user").status_code == 200

    client.portal.call(_delete_user, client.app.state.store, "paul")
    assert client.get("/user").status_code == 401
    assert client.get("/", follow_redirects=False).status_code == 303


def test_store_errors_become_responses(client, monkeypatch):
    async def broken(username):
        raise StoreError("gone")

    monkeypatch.setattr(client.app.state.store, "get_user", broken)
    r = login(client, "paul", "paul")
    assert r.status_code == 503


def test_seed_runs_once_across_restarts(settings):
    for _ in range(2):
        with TestClient(create_app(settings)) as c:
            assert c.portal.call(c.app.state.store.count_users) == 3


def test_logout_clears_cookie_on_unexpected_destroy_error(client, settings, monkeypatch):
    login(client, "paul", "paul")

    async def closed(token):
        raise ValueError("Connection closed")

    monkeypatch.setattr(client.app.state.sessions, "destroy", closed)
    r = client.get("/logout")
    assert r.status_code == 200
    assert settings.cookie_name not in client.cookies


def test_unhandled_errors_become_500(settings, caplog, monkeypatch):
    with TestClient(create_app(settings), raise_server_exceptions=False) as c:
        login(c, "paul", "paul")

        async def broken(username):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(c.app.state.store, "get_user", broken)

        r = c.get("/user")
        assert r.status_code == 500
        assert r.json() == {"detail": "Internal Server Error"}

        r = c.get("/private", follow_redirects=False)
        assert r.status_code == 500
        assert r.headers["content-type"].startswith("text/plain")
        assert r.text == "Internal Server Error"

    assert "unhandled_error" in caplog.text


def test_startup_fails_when_store_is_unreachable(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    settings = replace(
        Settings(secret_key="k", log_level="WARNING"),
        database_path=str(blocker / "db.sqlite"),
        store_connect_timeout=1.0,
    )
    store = SQLiteStore(settings.database_path, connect_timeout=1.0)
    served = []

    app = create_app(settings, store=store)

    @app.get("/ping")
    def ping():
        served.append(True)
        return {"ok": True}

    with pytest.raises(StoreConnectionError):
        with TestClient(app) as c:
            c.get("/ping")

    assert served == []
    assert store._conn is None


def test_malformed_seed_file_does_not_stop_startup(settings, tmp_path):
    bad = tmp_path / "bad.yml"
    bad.write_text("users: [unclosed", encoding="utf-8")

    for seed_path in (bad, tmp_path):
        s = replace(settings, seed_path=seed_path)
        with TestClient(create_app(s)) as c:
            assert c.get("/login").status_code == 200
            assert c.portal.call(c.app.state.store.count_users) == 0
