"""
Configuration parsing and the production startup guard.
"""
from __future__ import annotations

import pytest

from eduxperience.onboarding.config import load_onboarding_config
from eduxperience.web import config as web_config


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for var in ("SUPABASE_URL", "APP_BASE", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"):
        monkeypatch.delenv(var, raising=False)
    cfg = load_onboarding_config()
    assert cfg.pending_ttl_seconds == 24 * 3600
    assert cfg.verify_auto_advance_seconds == 3
    assert cfg.http_timeout_seconds == 10
    assert cfg.photos_bucket == "profile-photos"
    assert cfg.client_storage_backend == "memory"
    assert cfg.service_role_key is None


def test_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co/")
    monkeypatch.setenv("APP_BASE", "https://app.example.com/")
    monkeypatch.setenv("PENDING_TTL_SECONDS", "3600")
    monkeypatch.setenv("VERIFY_AUTO_ADVANCE_SECONDS", "0")
    monkeypatch.setenv("CLIENT_STORAGE_BACKEND", "DB")
    monkeypatch.setenv("PROFILE_PHOTOS_BUCKET", "avatars")
    cfg = load_onboarding_config()
    assert cfg.supabase_url == "https://xyz.supabase.co"
    assert cfg.app_base == "https://app.example.com"
    assert cfg.pending_ttl_seconds == 3600
    assert cfg.verify_auto_advance_seconds == 0
    assert cfg.client_storage_backend == "db"
    assert cfg.photos_bucket == "avatars"


@pytest.mark.parametrize(
    "var, value",
    [
        ("PENDING_TTL_SECONDS", "soon"),
        ("PENDING_TTL_SECONDS", "5"),
        ("SUPABASE_HTTP_TIMEOUT", "0"),
        ("VERIFY_AUTO_ADVANCE_SECONDS", "120"),
        ("CLIENT_STORAGE_BACKEND", "redis"),
        ("SUPABASE_URL", "ftp://example.com"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch: pytest.MonkeyPatch, var, value):
    monkeypatch.setenv(var, value)
    with pytest.raises(ValueError):
        load_onboarding_config()


def _prod_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDUX_ENV", "prod")
    monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-real")
    monkeypatch.setenv("CLIENT_STORAGE_BACKEND", "db")
    monkeypatch.setenv("DATABASE_URL", "postgresql://edux_app:pw@db.example.com:5432/postgres?sslmode=require")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)


def test_guard_accepts_secure_prod_config(monkeypatch: pytest.MonkeyPatch):
    _prod_env(monkeypatch)
    web_config.ensure_secure_config_on_startup()


def test_guard_is_permissive_in_dev(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EDUX_ENV", "dev")
    monkeypatch.setenv("SUPABASE_URL", "http://127.0.0.1:54321")
    monkeypatch.setenv("CLIENT_STORAGE_BACKEND", "memory")
    web_config.ensure_secure_config_on_startup()


@pytest.mark.parametrize(
    "var, value",
    [
        ("SUPABASE_URL", "http://xyz.supabase.co"),
        ("SUPABASE_URL", ""),
        ("SUPABASE_ANON_KEY", ""),
        ("SUPABASE_ANON_KEY", "DUMMY_DO_NOT_USE"),
        ("SUPABASE_SERVICE_ROLE_KEY", "DUMMY_DO_NOT_USE"),
        ("CLIENT_STORAGE_BACKEND", "memory"),
        ("DATABASE_URL", "postgresql://edux_app:pw@db/postgres?sslmode=disable"),
    ],
)
def test_guard_refuses_insecure_prod_config(monkeypatch: pytest.MonkeyPatch, var, value):
    _prod_env(monkeypatch)
    monkeypatch.setenv(var, value)
    with pytest.raises(SystemExit):
        web_config.ensure_secure_config_on_startup()


def test_guard_requires_database_url_for_db_backend(monkeypatch: pytest.MonkeyPatch):
    _prod_env(monkeypatch)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_DB_URL", raising=False)
    with pytest.raises(SystemExit):
        web_config.ensure_secure_config_on_startup()

    monkeypatch.setenv("SUPABASE_DB_URL", "postgresql://edux_app:pw@db.example.com:5432/postgres")
    web_config.ensure_secure_config_on_startup()


def test_prod_start_never_falls_back_to_memory_storage(monkeypatch: pytest.MonkeyPatch):
    from eduxperience.web import main

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_DB_URL", raising=False)
    with pytest.raises(SystemExit):
        main.build_client_storage("db", "prod")


def test_dev_start_uses_memory_storage_without_database(monkeypatch: pytest.MonkeyPatch):
    from eduxperience.onboarding.client_storage import InMemoryClientStorage
    from eduxperience.web import main

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_DB_URL", raising=False)
    assert isinstance(main.build_client_storage("db", "dev"), InMemoryClientStorage)
    assert isinstance(main.build_client_storage("memory", "prod"), InMemoryClientStorage)
