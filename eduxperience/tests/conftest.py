"""
Pytest configuration for the EduXperience test suite.

Why: Force AnyIO to use the asyncio backend and give every test fresh
module-level singletons in `eduxperience.web.main`, so state written by one
test (sessions, pending submissions, patched identity clients) never leaks
into the next.
"""
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Run every test with dev defaults unless it opts into something else."""
    for var in (
        "EDUX_ENV",
        "EDUX_TRUST_PROXY",
        "ALLOWED_REGISTRATION_DOMAINS",
        "CLIENT_STORAGE_BACKEND",
        "PENDING_TTL_SECONDS",
        "VERIFY_AUTO_ADVANCE_SECONDS",
        "SUPABASE_HTTP_TIMEOUT",
        "PROFILE_PHOTOS_BUCKET",
        "PROFILE_PHOTO_MAX_BYTES",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_web_singletons(monkeypatch: pytest.MonkeyPatch):
    """Replace session store, client storage and asset storage per test."""
    from eduxperience.identity_access.stores import SessionStore
    from eduxperience.onboarding.client_storage import InMemoryClientStorage
    from eduxperience.web import main

    monkeypatch.setattr(main, "SESSION_STORE", SessionStore())
    monkeypatch.setattr(main, "CLIENT_STORAGE", InMemoryClientStorage())
    monkeypatch.setattr(main, "ASSETS", None)
    main.SETTINGS.override_environment(None)
    yield
