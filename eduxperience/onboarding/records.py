"""
Record store adapter for profile rows (Supabase PostgREST).

Intent:
    Insert and update the two dependent profile rows (`profiles` and the
    role table) on behalf of the signed-in user. Requests carry the user's
    access token, so row-level security policies decide whether a write is
    allowed, exactly as for a browser client.

Behavior:
    - Failures raise `RecordStoreError` with a structured `kind`:
      policy rejection (SQLSTATE 42501 or HTTP 403), conflict (23505) or
      failure (anything else, including network errors).
    - Message matching on "row-level security" is kept only as a fallback for
      proxies that strip the SQLSTATE.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol
import re

# Small indirection to ease monkeypatching in tests
import requests as http

from eduxperience.onboarding.errors import RecordErrorKind, RecordStoreError


def http_request(method: str, url: str, *, headers: Dict[str, str], json: Any = None, params: Dict[str, str] | None = None, timeout: float = 10.0):
    return http.request(method, url, headers=headers, json=json, params=params, timeout=timeout)


class RecordStore(Protocol):
    """Minimal write interface for profile rows."""

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]: ...

    def update(self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]) -> None: ...


_POLICY_CODES = frozenset({"42501"})
_CONFLICT_CODES = frozenset({"23505"})
_POLICY_TEXT = re.compile(r"row[- ]level security|\bRLS\b", re.IGNORECASE)
_ERROR_MAX_LENGTH = 256
_SENSITIVE_TOKEN_PATTERN = re.compile(r"(?i)(secret|token|password|key)[-_a-z0-9]*\s*=\s*\S+")


def _sanitize_error_message(value: Optional[str]) -> str:
    """Strip secrets and truncate lengthy provider errors for safe exposure."""
    collapsed = " ".join(str(value or "").split())
    scrubbed = _SENSITIVE_TOKEN_PATTERN.sub("[redacted]", collapsed)
    if len(scrubbed) > _ERROR_MAX_LENGTH:
        scrubbed = scrubbed[: _ERROR_MAX_LENGTH - 3].rstrip() + "..."
    return scrubbed or "record_store_error"


def classify_error(*, status: int | None, code: str | None, message: str) -> RecordErrorKind:
    """Map a PostgREST error to a RecordErrorKind."""
    if code in _POLICY_CODES or status == 403:
        return RecordErrorKind.POLICY_REJECTED
    if code in _CONFLICT_CODES or (status == 409 and not code):
        return RecordErrorKind.CONFLICT
    if _POLICY_TEXT.search(message or ""):
        return RecordErrorKind.POLICY_REJECTED
    return RecordErrorKind.FAILURE


def _error_from_response(resp) -> RecordStoreError:
    try:
        body = resp.json()
    except Exception:
        body = None
    code = None
    message = ""
    if isinstance(body, dict):
        code = str(body["code"]) if body.get("code") is not None else None
        message = str(body.get("message") or body.get("details") or body.get("hint") or "")
    if not message:
        message = f"HTTP {resp.status_code}"
    kind = classify_error(status=resp.status_code, code=code, message=message)
    return RecordStoreError(kind, _sanitize_error_message(message), code=code)


class SupabaseRecordStore:
    """PostgREST client bound to one user's access token."""

    def __init__(self, *, base_url: str, anon_key: str, access_token: str, timeout_seconds: float = 10.0) -> None:
        self._rest = f"{base_url.rstrip('/')}/rest/v1"
        self._anon_key = anon_key
        self._access_token = access_token
        self._timeout = timeout_seconds

    def _headers(self, *, prefer: str) -> Dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
            "Prefer": prefer,
        }

    def _send(self, method: str, table: str, *, json: Any, params: Dict[str, str] | None = None, prefer: str):
        try:
            resp = http_request(
                method,
                f"{self._rest}/{table}",
                headers=self._headers(prefer=prefer),
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except http.RequestException as exc:
            raise RecordStoreError(RecordErrorKind.FAILURE, f"Record store unavailable ({exc.__class__.__name__})") from exc
        if resp.status_code >= 400:
            raise _error_from_response(resp)
        return resp

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        resp = self._send("POST", table, json=dict(row), prefer="return=representation")
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, list) and body and isinstance(body[0], dict):
            return body[0]
        return dict(row)

    def update(self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]) -> None:
        params = {str(col): f"eq.{val}" for col, val in match.items()}
        self._send("PATCH", table, json=dict(patch), params=params, prefer="return=minimal")


__all__ = ["RecordStore", "SupabaseRecordStore", "classify_error"]
