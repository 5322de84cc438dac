"EduXperience onboarding web app"
from __future__ import annotations

import logging
import os
import secrets
import sys
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from eduxperience.identity_access.gotrue_client import AuthSession, GoTrueClient, GoTrueConfig
from eduxperience.identity_access.stores import SessionRecord, SessionStore
from eduxperience.onboarding.client_storage import ClientStorageMedium, InMemoryClientStorage
from eduxperience.onboarding.config import load_onboarding_config
from eduxperience.onboarding.pending import PendingSubmissionStore
from eduxperience.onboarding.provisioning import ProvisioningExecutor
from eduxperience.onboarding.records import RecordStore, SupabaseRecordStore
from eduxperience.web.auth_utils import cookie_opts
from eduxperience.web.config import ensure_secure_config_on_startup, is_prod_like
from eduxperience.web.storage_wiring import wire_asset_storage_if_configured


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via EDUX_ENABLE_DOTENV (default true outside pytest).
    """
    if _under_pytest():
        return False
    flag = (os.getenv("EDUX_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------


class AuthSettings:
    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return os.getenv("EDUX_ENV", "dev").lower()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env


logger = logging.getLogger("eduxperience.web")
SETTINGS = AuthSettings()
CONFIG = load_onboarding_config()
SESSION_COOKIE_NAME = "edux_session"
CLIENT_COOKIE_NAME = "edux_client"
CLIENT_COOKIE_MAX_AGE = 365 * 24 * 3600
SESSION_TTL_SECONDS = 3600


def build_client_storage(backend: str, environment: str) -> ClientStorageMedium:
    """Pick the pending-submission medium; prod-like starts never fall back to memory."""
    if backend == "db":
        try:
            from eduxperience.onboarding.client_storage_db import DBClientStorage

            return DBClientStorage()
        except RuntimeError as exc:
            if is_prod_like(environment):
                raise SystemExit(f"Refusing to start: DB client storage unavailable ({exc}).") from exc
            logger.warning("DB client storage unavailable, using memory: %s", exc)
    return InMemoryClientStorage()


SESSION_STORE = SessionStore()
CLIENT_STORAGE = (
    InMemoryClientStorage()
    if _under_pytest()
    else build_client_storage(CONFIG.client_storage_backend, SETTINGS.environment)
)
IDENTITY = GoTrueClient(
    GoTrueConfig(base_url=CONFIG.supabase_url, anon_key=CONFIG.anon_key, timeout_seconds=CONFIG.http_timeout_seconds)
)
ASSETS = wire_asset_storage_if_configured()
CLOCK = time.time

app = FastAPI(title="EduXperience", description="Tutor and student onboarding", version="0.1.0")

# --- Wiring helpers (monkeypatched in tests) ------------------------------------


def record_store_for(access_token: str) -> RecordStore:
    """Record store bound to the user's token so row-level security applies."""
    return SupabaseRecordStore(
        base_url=CONFIG.supabase_url,
        anon_key=CONFIG.anon_key,
        access_token=access_token,
        timeout_seconds=CONFIG.http_timeout_seconds,
    )


def build_executor(access_token: str) -> ProvisioningExecutor:
    return ProvisioningExecutor(record_store_for(access_token), ASSETS, photos_bucket=CONFIG.photos_bucket)


def pending_store_for(request: Request) -> PendingSubmissionStore:
    return PendingSubmissionStore(
        CLIENT_STORAGE,
        request.state.client_id,
        clock=CLOCK,
        ttl_seconds=CONFIG.pending_ttl_seconds,
    )


def current_session(request: Request) -> Optional[SessionRecord]:
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if not sid:
        return None
    try:
        return SESSION_STORE.get(sid)
    except Exception as exc:
        logger.warning("Session store get failed: %s", exc.__class__.__name__)
        return None


def as_auth_session(rec: SessionRecord) -> AuthSession:
    return AuthSession(access_token=rec.access_token, refresh_token=rec.refresh_token, expires_in=None, account=None)


# --- Cookies --------------------------------------------------------------------


def _set_cookie(response: Response, key: str, value: str, *, max_age: int | None) -> None:
    opts = cookie_opts(SETTINGS.environment)
    response.set_cookie(
        key=key,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def set_session_cookie(response: Response, value: str, *, max_age: int | None = SESSION_TTL_SECONDS) -> None:
    _set_cookie(response, SESSION_COOKIE_NAME, value, max_age=max_age)


def clear_session_cookie(response: Response) -> None:
    _set_cookie(response, SESSION_COOKIE_NAME, "", max_age=0)


# --- Middleware -----------------------------------------------------------------


def _is_public_path(path: str) -> bool:
    return path.startswith("/auth/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    rec = current_session(request)
    if not rec:
        if path.startswith("/api/"):
            headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
            return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)
        return RedirectResponse(url="/auth/login", status_code=302)

    # Read-only session context for downstream handlers; tokens stay server-side.
    request.state.session = rec
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.environment == "prod":
        csp = "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; connect-src 'self';"
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; connect-src 'self';"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    # Verification links carry tokens in the query string; never leak them via Referer.
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cache-Control", "private, no-store")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.middleware("http")
async def client_identity(request: Request, call_next):
    """Attach the opaque client id that scopes pending submissions.

    Registered last so it runs first; every handler can rely on
    `request.state.client_id`.
    """
    client_id = request.cookies.get(CLIENT_COOKIE_NAME) or ""
    issued = False
    if not client_id or len(client_id) > 128:
        client_id = secrets.token_urlsafe(24)
        issued = True
    request.state.client_id = client_id
    response = await call_next(request)
    if issued:
        _set_cookie(response, CLIENT_COOKIE_NAME, client_id, max_age=CLIENT_COOKIE_MAX_AGE)
    return response


# --- Routes ---------------------------------------------------------------------

from eduxperience.web.routes.auth import auth_router  # noqa: E402
from eduxperience.web.routes.dashboard import dashboard_router  # noqa: E402

app.include_router(auth_router)
app.include_router(dashboard_router)


@app.get("/health")
async def health():
    return {"status": "healthy"}
