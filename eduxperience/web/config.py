"""
Configuration and startup security checks for the EduXperience web app.

Why: Pending registrations and identity tokens pass through this process. A
guard refuses obviously insecure production starts while local development
stays permissive.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os


def is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like `EDUX_ENV` only):
    - SUPABASE_URL must be set and use https.
    - SUPABASE_ANON_KEY must be set and not a placeholder.
    - SUPABASE_SERVICE_ROLE_KEY, when set, must not be a placeholder.
    - Pending submissions must survive restarts: CLIENT_STORAGE_BACKEND=db.
    - DATABASE_URL (or SUPABASE_DB_URL) must be set and must not explicitly
      disable TLS.
    """
    env = os.getenv("EDUX_ENV", "dev")
    if not is_prod_like(env):
        return  # dev/test remain permissive

    url = (os.getenv("SUPABASE_URL") or "").strip().lower()
    if not url:
        raise SystemExit("Refusing to start: SUPABASE_URL is unset in production.")
    if not url.startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must use https in production (got http).")

    anon = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
    if not anon or anon.upper().startswith(("DUMMY", "CHANGE_ME")):
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production.")

    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if srole and srole.upper().startswith(("DUMMY", "CHANGE_ME")):
        raise SystemExit("Refusing to start: SUPABASE_SERVICE_ROLE_KEY is a dummy placeholder in production.")

    backend = (os.getenv("CLIENT_STORAGE_BACKEND") or "memory").strip().lower()
    if backend != "db":
        raise SystemExit(
            "Refusing to start: CLIENT_STORAGE_BACKEND=db is mandatory in production/staging "
            "(in-memory pending submissions are lost on restart)."
        )

    dsn = os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL") or ""
    if not dsn.strip():
        raise SystemExit("Refusing to start: DATABASE_URL (or SUPABASE_DB_URL) is required with CLIENT_STORAGE_BACKEND=db.")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
