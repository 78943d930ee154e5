# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from authgate.auth.session import SessionManager
from authgate.auth.users import verify
from authgate.config import Settings
from authgate.errors import AuthGateError, StoreError
from authgate.log import configure_logging
from authgate.permissions import (
    CurrentUser,
    current_user_optional,
    load_user_from_request,
    require_api_user,
    require_user,
    safe_next,
)
from authgate.seed import load_demo_accounts, seed_users_if_empty
from authgate.store import BaseStore, get_store

logger = structlog.get_logger()

BASE_DIR = Path(__file__).resolve().parent

templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

# Data routes answer with JSON instead of redirects or HTML.
DATA_PATHS = {"/user"}


def _render(request: Request, template_name: str, ctx: Optional[dict] = None):
    """TemplateResponse wrapper injecting the current user."""
    base_ctx = {"current_user": current_user_optional(request)}
    return templates.TemplateResponse(request, template_name, {**base_ctx, **(ctx or {})})


def _error_response(request: Request, status_code: int, detail: str):
    if request.url.path in DATA_PATHS:
        return JSONResponse({"detail": detail}, status_code=status_code)
    return PlainTextResponse(detail, status_code=status_code)


async def _read_credentials(request: Request) -> dict:
    """Accept the login body as JSON or as a urlencoded/multipart form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


def create_app(settings: Optional[Settings] = None, store: Optional[BaseStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    store = store or get_store(settings)
    sessions = SessionManager(
        store,
        settings.secret_key,
        max_age=settings.session_max_age,
        secure=settings.cookie_secure,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A StoreConnectionError propagates and aborts startup before any request is served.
        await store.connect()
        try:
            purged = await sessions.purge_expired()
            if purged:
                logger.info("sessions_purged", count=purged)
            if settings.seed_on_startup:
                await seed_users_if_empty(store, load_demo_accounts(settings.seed_path))
        except AuthGateError as e:
            logger.error("startup_task_failed", error=str(e))
        logger.info("app_ready", port=settings.port)
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = sessions

    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        logger.info("request", method=request.method, path=request.url.path)
        try:
            request.state.user = await load_user_from_request(request)
            return await call_next(request)
        except Exception:
            logger.exception("unhandled_error", method=request.method, path=request.url.path)
            return _error_response(request, 500, "Internal Server Error")

    @app.exception_handler(StoreError)
    async def _store_error_handler(request: Request, exc: StoreError):
        logger.error("store_error", path=request.url.path, error=str(exc))
        return _error_response(request, 503, "Service unavailable")

    # ------------------ Routes ------------------

    @app.get("/login", response_class=HTMLResponse)
    def login_get(request: Request, next: str = "/", info: str = ""):
        return _render(request, "login.html", {"next": safe_next(next), "error": info})

    @app.post("/login")
    async def login_post(request: Request):
        data = await _read_credentials(request)
        username = str(data.get("username") or "")
        password = str(data.get("password") or "")
        next_url = safe_next(data.get("next"))

        result = await verify(store, username, password)
        if not result.ok:
            logger.info("login_failed", username=username.strip(), reason=result.reason)
            query = {"info": result.message}
            if next_url != "/":
                query["next"] = next_url
            return RedirectResponse(url="/login?" + urlencode(query), status_code=303)

        token = await sessions.create(result.username)
        logger.info("login_succeeded", username=result.username)
        resp = RedirectResponse(url=next_url, status_code=303)
        resp.set_cookie(
            settings.cookie_name,
            token,
            max_age=settings.session_max_age,
            **sessions.cookie_settings(),
        )
        return resp

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request, user: CurrentUser = Depends(require_user)):
        return _render(request, "index.html", {"user": user})

    @app.get("/private", response_class=HTMLResponse)
    def private(request: Request, user: CurrentUser = Depends(require_user)):
        return _render(request, "private.html", {"user": user})

    @app.get("/user")
    async def current_user(user: CurrentUser = Depends(require_api_user)):
        record = await store.get_user(user.username)
        if not record:
            return JSONResponse({"detail": "Not authenticated"}, status_code=401)
        return {"user": record.public_dict()}

    @app.get("/logout", response_class=HTMLResponse)
    async def logout(request: Request):
        user = current_user_optional(request)
        token = request.cookies.get(settings.cookie_name, "")
        try:
            await sessions.destroy(token)
        except Exception as e:
            # The cookie is cleared below whatever the store reports.
            logger.error("session_destroy_failed", error=str(e))
        logger.info("logout", username=user.username if user else None)
        request.state.user = None
        resp = _render(request, "logout.html")
        resp.delete_cookie(settings.cookie_name, **sessions.cookie_settings())
        return resp

    return app
