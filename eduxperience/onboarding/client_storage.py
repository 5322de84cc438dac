"""
Client-scoped key/value storage media for the onboarding pipeline.

Why: The verification email is opened in another browser context, possibly
after the tab that started sign-up has closed. Pending submissions therefore
live server-side, keyed by an opaque client id cookie, and behave like
per-origin browser storage: string values under plain keys.

Security:
    Values are unencrypted and readable by any code holding the client id.
    Treat them as a low-trust cache, never as an authorization source.
"""
from __future__ import annotations

from threading import Lock
from typing import Dict, Optional, Protocol, Tuple


class ClientStorageMedium(Protocol):
    """Minimal string key/value interface scoped by client id."""

    def get_item(self, client_id: str, key: str) -> Optional[str]: ...

    def set_item(self, client_id: str, key: str, value: str) -> None: ...

    def remove_item(self, client_id: str, key: str) -> None: ...


class InMemoryClientStorage:
    """Process-local medium for development and tests."""

    def __init__(self) -> None:
        self._data: Dict[Tuple[str, str], str] = {}
        self._lock = Lock()

    def get_item(self, client_id: str, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get((client_id, key))

    def set_item(self, client_id: str, key: str, value: str) -> None:
        with self._lock:
            self._data[(client_id, key)] = value

    def remove_item(self, client_id: str, key: str) -> None:
        with self._lock:
            self._data.pop((client_id, key), None)


__all__ = ["ClientStorageMedium", "InMemoryClientStorage"]
