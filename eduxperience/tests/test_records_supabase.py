"""
PostgREST record store: error classification and request shape.

`http_request` is monkeypatched; no network access.
"""
from __future__ import annotations

import pytest
import requests

from eduxperience.onboarding import records
from eduxperience.onboarding.errors import RecordErrorKind, RecordStoreError


class _Resp:
    def __init__(self, status_code: int, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


def _store() -> records.SupabaseRecordStore:
    return records.SupabaseRecordStore(base_url="https://db.example.com/", anon_key="anon", access_token="user-jwt")


@pytest.mark.parametrize(
    "status, code, message, expected",
    [
        (403, "42501", "new row violates row-level security policy", RecordErrorKind.POLICY_REJECTED),
        (401, "42501", "permission denied", RecordErrorKind.POLICY_REJECTED),
        (403, None, "forbidden", RecordErrorKind.POLICY_REJECTED),
        (409, "23505", "duplicate key value", RecordErrorKind.CONFLICT),
        (409, None, "conflict", RecordErrorKind.CONFLICT),
        (400, None, "violates row level security", RecordErrorKind.POLICY_REJECTED),
        (400, None, "blocked by RLS", RecordErrorKind.POLICY_REJECTED),
        (401, "PGRST301", "JWT expired", RecordErrorKind.FAILURE),
        (500, None, "internal error", RecordErrorKind.FAILURE),
    ],
)
def test_classify_error(status, code, message, expected):
    assert records.classify_error(status=status, code=code, message=message) is expected


def test_insert_posts_row_with_user_token(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def fake_request(method, url, *, headers, json=None, params=None, timeout=10.0):
        seen.update(method=method, url=url, headers=headers, json=json, params=params)
        return _Resp(201, [{"id": 7, **json}])

    monkeypatch.setattr(records, "http_request", fake_request)
    row = _store().insert("profiles", {"user_id": "u1", "full_name": "A"})

    assert seen["method"] == "POST"
    assert seen["url"] == "https://db.example.com/rest/v1/profiles"
    assert seen["headers"]["Authorization"] == "Bearer user-jwt"
    assert seen["headers"]["apikey"] == "anon"
    assert seen["headers"]["Prefer"] == "return=representation"
    assert row["id"] == 7


def test_insert_policy_rejection_raises_structured_error(monkeypatch: pytest.MonkeyPatch):
    body = {"code": "42501", "message": 'new row violates row-level security policy for table "profiles"'}
    monkeypatch.setattr(records, "http_request", lambda *a, **k: _Resp(403, body))

    with pytest.raises(RecordStoreError) as excinfo:
        _store().insert("profiles", {"user_id": "u1"})
    assert excinfo.value.kind is RecordErrorKind.POLICY_REJECTED
    assert excinfo.value.code == "42501"


def test_network_error_is_a_hard_failure(monkeypatch: pytest.MonkeyPatch):
    def boom(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(records, "http_request", boom)
    with pytest.raises(RecordStoreError) as excinfo:
        _store().insert("tutor_profiles", {"user_id": "u1"})
    assert excinfo.value.kind is RecordErrorKind.FAILURE


def test_error_messages_are_sanitized(monkeypatch: pytest.MonkeyPatch):
    body = {"message": "failed with token=abc.def.ghi " + "x" * 400}
    monkeypatch.setattr(records, "http_request", lambda *a, **k: _Resp(500, body))

    with pytest.raises(RecordStoreError) as excinfo:
        _store().insert("profiles", {"user_id": "u1"})
    assert "abc.def.ghi" not in excinfo.value.message
    assert len(excinfo.value.message) <= 256


def test_update_filters_by_match_columns(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def fake_request(method, url, *, headers, json=None, params=None, timeout=10.0):
        seen.update(method=method, json=json, params=params)
        return _Resp(204)

    monkeypatch.setattr(records, "http_request", fake_request)
    _store().update("profiles", {"user_id": "u1"}, {"profile_photo_url": "https://cdn/x.png"})

    assert seen == {"method": "PATCH", "json": {"profile_photo_url": "https://cdn/x.png"}, "params": {"user_id": "eq.u1"}}
