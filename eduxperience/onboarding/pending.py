"""
Pending-submission repository.

Intent:
    Hold a role-tagged registration form until the account's email address is
    verified, so provisioning can resume from any entry point later on.

Behavior:
    - One entry per role and client (`pendingTutorProfile`,
      `pendingStudentProfile`); a new submission overwrites the previous one.
    - Values are JSON `{"formData": {...}, "timestamp": <epoch ms>}`.
    - Entries aged `ttl_seconds` (24h) or more are expired lazily on read and
      removed. Unparseable entries are removed the same way.
    - Reads and writes never raise to callers; medium errors are logged.

The clock is injected so expiry can be tested without waiting.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
import json
import logging
import time

from eduxperience.onboarding.client_storage import ClientStorageMedium


DEFAULT_TTL_SECONDS = 24 * 60 * 60

ROLE_KEYS = {
    "tutor": "pendingTutorProfile",
    "student": "pendingStudentProfile",
}
VERIFIED_FLAG_KEY = "emailVerified"
VERIFIED_USER_KEY = "verificationUserId"

logger = logging.getLogger("eduxperience.onboarding.pending")


@dataclass(frozen=True)
class PendingSubmission:
    role: str
    form_data: Dict[str, Any]
    created_at: float  # epoch seconds


def pending_key(role: str) -> str:
    """Return the storage key for `role`; unknown roles are a programming error."""
    try:
        return ROLE_KEYS[role]
    except KeyError:
        raise ValueError(f"no pending submissions for role: {role!r}") from None


class PendingSubmissionStore:
    def __init__(
        self,
        medium: ClientStorageMedium,
        client_id: str,
        *,
        clock: Callable[[], float] = time.time,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._medium = medium
        self._client_id = client_id
        self._clock = clock
        self._ttl_ms = int(ttl_seconds) * 1000

    @property
    def client_id(self) -> str:
        return self._client_id

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _remove(self, key: str) -> None:
        try:
            self._medium.remove_item(self._client_id, key)
        except Exception as exc:
            logger.warning("Client storage delete failed for %s: %s", key, exc.__class__.__name__)

    def save(self, role: str, form_data: Mapping[str, Any]) -> None:
        key = pending_key(role)
        try:
            value = json.dumps({"formData": dict(form_data), "timestamp": self._now_ms()})
            self._medium.set_item(self._client_id, key, value)
        except Exception as exc:
            logger.warning("Pending %s submission not persisted: %s", role, exc.__class__.__name__)

    def read(self, role: str) -> Optional[PendingSubmission]:
        key = pending_key(role)
        try:
            raw = self._medium.get_item(self._client_id, key)
        except Exception as exc:
            logger.warning("Client storage read failed for %s: %s", key, exc.__class__.__name__)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            form_data = data["formData"]
            timestamp = data["timestamp"]
            if not isinstance(form_data, dict):
                raise TypeError("formData must be an object")
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise TypeError("timestamp must be a number")
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Discarding unreadable %s entry: %s", key, exc.__class__.__name__)
            self._remove(key)
            return None
        if self._now_ms() - timestamp >= self._ttl_ms:
            logger.info("Discarding expired %s entry", key)
            self._remove(key)
            return None
        return PendingSubmission(role=role, form_data=form_data, created_at=timestamp / 1000.0)

    def clear(self, role: str) -> None:
        self._remove(pending_key(role))

    def snapshot(self, role: str) -> Optional[str]:
        """Return the raw stored entry for `role` unparsed, for a later `restore`."""
        key = pending_key(role)
        try:
            return self._medium.get_item(self._client_id, key)
        except Exception as exc:
            logger.warning("Client storage read failed for %s: %s", key, exc.__class__.__name__)
            return None

    def restore(self, role: str, raw: Optional[str]) -> None:
        """Put back a `snapshot`; None removes the entry."""
        key = pending_key(role)
        if raw is None:
            self._remove(key)
            return
        try:
            self._medium.set_item(self._client_id, key, raw)
        except Exception as exc:
            logger.warning("Pending %s entry not restored: %s", role, exc.__class__.__name__)

    # --- Verification markers ------------------------------------------------

    def mark_verified(self, user_id: str) -> None:
        """Persist the "email verified" flag and the verified account id."""
        try:
            self._medium.set_item(self._client_id, VERIFIED_FLAG_KEY, "true")
            self._medium.set_item(self._client_id, VERIFIED_USER_KEY, user_id)
        except Exception as exc:
            logger.warning("Verification flag not persisted: %s", exc.__class__.__name__)

    def verified_user_id(self) -> Optional[str]:
        """Return the verified account id, or None when no verification was recorded."""
        try:
            if self._medium.get_item(self._client_id, VERIFIED_FLAG_KEY) != "true":
                return None
            return self._medium.get_item(self._client_id, VERIFIED_USER_KEY)
        except Exception as exc:
            logger.warning("Verification flag read failed: %s", exc.__class__.__name__)
            return None


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "PendingSubmission",
    "PendingSubmissionStore",
    "ROLE_KEYS",
    "VERIFIED_FLAG_KEY",
    "VERIFIED_USER_KEY",
    "pending_key",
]
