from __future__ import annotations

import pytest

from eduxperience.onboarding.storage_supabase import SupabaseAssetStorage
from eduxperience.web import storage_wiring


class _FakeBucket:
    def __init__(self, public_url_result):
        self.uploads = []
        self._public_url_result = public_url_result

    def upload(self, path, file, file_options):
        self.uploads.append((path, file, file_options))

    def get_public_url(self, path):
        return self._public_url_result


class _FakeStorage:
    def __init__(self, bucket: _FakeBucket):
        self.bucket = bucket
        self.requested = []

    def from_(self, name: str):
        self.requested.append(name)
        return self.bucket


class _FakeSupabaseClient:  # supabase.create_client shape
    def __init__(self, bucket: _FakeBucket):
        self.storage = _FakeStorage(bucket)


def test_put_object_uploads_relative_key_with_content_type():
    bucket = _FakeBucket("https://cdn/x")
    client = _FakeSupabaseClient(bucket)
    adapter = SupabaseAssetStorage(client)

    adapter.put_object(bucket="profile-photos", key="/profile-photos/u1-profile.png", body=b"img", content_type="image/png")

    path, body, opts = bucket.uploads[0]
    assert client.storage.requested == ["profile-photos"]
    assert path == "u1-profile.png"
    assert body == b"img"
    assert opts["content-type"] == "image/png"
    assert opts["upsert"] == "true"


@pytest.mark.parametrize(
    "result",
    [
        "https://cdn/profile-photos/u1-profile.png?",
        {"publicUrl": "https://cdn/profile-photos/u1-profile.png"},
        {"data": {"publicURL": "https://cdn/profile-photos/u1-profile.png"}},
    ],
)
def test_public_url_accepts_client_shapes(result):
    adapter = SupabaseAssetStorage(_FakeSupabaseClient(_FakeBucket(result)))
    assert adapter.public_url(bucket="profile-photos", key="u1-profile.png") == "https://cdn/profile-photos/u1-profile.png"


def test_public_url_missing_raises():
    adapter = SupabaseAssetStorage(_FakeSupabaseClient(_FakeBucket({})))
    with pytest.raises(RuntimeError):
        adapter.public_url(bucket="profile-photos", key="u1-profile.png")


def test_wiring_skipped_without_service_key(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co")
    monkeypatch.delenv("SUPABASE_SERVICE_ROLE_KEY", raising=False)
    assert storage_wiring.wire_asset_storage_if_configured() is None


def test_wiring_uses_supabase_client(monkeypatch: pytest.MonkeyPatch):
    import supabase

    created = {}

    def fake_create_client(url, key):
        created.update(url=url, key=key)
        return _FakeSupabaseClient(_FakeBucket("https://cdn/x"))

    monkeypatch.setattr(supabase, "create_client", fake_create_client)
    monkeypatch.setenv("SUPABASE_URL", "https://xyz.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")

    adapter = storage_wiring.wire_asset_storage_if_configured()

    assert isinstance(adapter, SupabaseAssetStorage)
    assert created == {"url": "https://xyz.supabase.co", "key": "service-key"}
