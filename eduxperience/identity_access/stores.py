"""
In-memory SessionStore for the web layer.

Why: Keep identity-provider tokens server-side and opaque to the browser. The
cookie carries only a random session id; access and refresh tokens stay here.
For multi-instance deployments replace with a Redis/DB-backed store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    user_id: str
    email: str
    email_confirmed: bool
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    ttl_seconds: int = 3600


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(
        self,
        *,
        user_id: str,
        email: str,
        email_confirmed: bool,
        access_token: str,
        refresh_token: str,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(
            session_id=sid,
            user_id=user_id,
            email=email,
            email_confirmed=email_confirmed,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=_now() + ttl_seconds,
            ttl_seconds=ttl_seconds,
        )
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def mark_confirmed(self, session_id: str) -> None:
        rec = self._data.get(session_id)
        if rec:
            rec.email_confirmed = True

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
