"""
Onboarding configuration parsing and validation.

Intent:
    Provide a single place to read the environment variables that control the
    identity service endpoint, HTTP timeouts, the pending-submission TTL, the
    verification page and the client storage backend.

Why:
    Centralising configuration makes defaults and validation explicit and lets
    tests exercise config behaviour without booting the web app.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from urllib.parse import urlparse

from eduxperience.onboarding.pending import DEFAULT_TTL_SECONDS
from eduxperience.storage.config import get_profile_photos_bucket


@dataclass(frozen=True)
class OnboardingConfig:
    supabase_url: str
    anon_key: str
    service_role_key: str | None
    http_timeout_seconds: int
    app_base: str
    pending_ttl_seconds: int
    verify_auto_advance_seconds: int
    photos_bucket: str
    client_storage_backend: str  # "memory" | "db"


def _int_env(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw!r}")
    if value < minimum or value > maximum:
        raise ValueError(f"{name} out of range ({minimum}..{maximum}), got: {value}")
    return value


def _validate_base_url(name: str, url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"{name} must be an absolute http(s) URL")


def load_onboarding_config() -> OnboardingConfig:
    """
    Parse and validate onboarding configuration from environment variables.

    Behavior:
        - `SUPABASE_URL` defaults to the local Supabase CLI port; `APP_BASE`
          to the local web app. Both must be absolute http(s) URLs.
        - `SUPABASE_HTTP_TIMEOUT` (1..60, default 10) seconds.
        - `PENDING_TTL_SECONDS` (60..7 days, default 24h).
        - `VERIFY_AUTO_ADVANCE_SECONDS` (0..30, default 3); 0 disables the
          automatic redirect, the Continue link stays.
        - `CLIENT_STORAGE_BACKEND` is "memory" (default) or "db".
    """
    supabase_url = (os.getenv("SUPABASE_URL") or "http://127.0.0.1:54321").strip().rstrip("/")
    _validate_base_url("SUPABASE_URL", supabase_url)
    app_base = (os.getenv("APP_BASE") or "http://localhost:8100").strip().rstrip("/")
    _validate_base_url("APP_BASE", app_base)
    backend = (os.getenv("CLIENT_STORAGE_BACKEND") or "memory").strip().lower()
    if backend not in {"memory", "db"}:
        raise ValueError("CLIENT_STORAGE_BACKEND must be 'memory' or 'db'")
    return OnboardingConfig(
        supabase_url=supabase_url,
        anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip() or None,
        http_timeout_seconds=_int_env("SUPABASE_HTTP_TIMEOUT", 10, minimum=1, maximum=60),
        app_base=app_base,
        pending_ttl_seconds=_int_env("PENDING_TTL_SECONDS", DEFAULT_TTL_SECONDS, minimum=60, maximum=7 * 24 * 3600),
        verify_auto_advance_seconds=_int_env("VERIFY_AUTO_ADVANCE_SECONDS", 3, minimum=0, maximum=30),
        photos_bucket=get_profile_photos_bucket(),
        client_storage_backend=backend,
    )


__all__ = ["OnboardingConfig", "load_onboarding_config"]
