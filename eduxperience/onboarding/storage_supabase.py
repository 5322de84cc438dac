"""
Supabase-backed asset storage for profile photos.

This adapter implements AssetStorage using a provided Supabase client.
It is intentionally duck-typed to avoid a hard dependency during testing. The
client is expected to expose `.storage.from_(bucket)` which returns an object
offering:

- upload(path, file, file_options) -> Any
- get_public_url(path) -> str | { publicUrl | publicURL | public_url }

Security:
- The caller must ensure the client is initialized with the Service Role key.
- The profile photo bucket is public-read; uploads happen server-side only.
"""
from __future__ import annotations

from typing import Any, Dict, Protocol


class AssetStorage(Protocol):
    """Minimal interface to write an asset and resolve its public URL."""

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None: ...

    def public_url(self, *, bucket: str, key: str) -> str: ...


class SupabaseAssetStorage:
    """Asset storage using a supabase client for Storage operations."""

    def __init__(self, client: Any):
        # Duck-typed supabase client, e.g., from `supabase import create_client(...)`.
        self._client = client

    # --- Helpers -----------------------------------------------------------------

    def _bucket(self, bucket: str) -> Any:
        """Return a bucket proxy from either supabase client or storage3 client.

        Supports two client shapes:
        - supabase.create_client(...): expose `.storage.from_(bucket)`
        - storage3 SyncStorageClient: expose `.from_(bucket)` directly
        """
        c = self._client
        storage = getattr(c, "storage", None)
        if storage is not None and hasattr(storage, "from_"):
            return storage.from_(bucket)
        if hasattr(c, "from_"):
            return c.from_(bucket)  # type: ignore[attr-defined]
        raise RuntimeError("invalid_supabase_client")

    @staticmethod
    def _first_key(d: Dict[str, Any], *keys: str) -> Any:
        for k in keys:
            if k in d and d[k] is not None:
                return d[k]
        return None

    @staticmethod
    def _relative_key(bucket: str, key: str) -> str:
        # Supabase Storage expects paths relative to the bucket
        norm_key = key.lstrip("/")
        prefix = f"{bucket}/"
        if norm_key.startswith(prefix):
            norm_key = norm_key[len(prefix):]
        return norm_key

    # --- Protocol methods --------------------------------------------------------

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Upload a binary object to Supabase Storage.

        Behavior:
            - Normalizes the key relative to the bucket.
            - Passes content-type via options to be compatible across client versions
              (supports both "content-type" and "contentType" keys).
            - Overwrites an existing photo for the same user (`upsert`).

        Raises:
            Propagates client exceptions. No return value on success.
        """
        b = self._bucket(bucket)
        opts = {"content-type": content_type, "contentType": content_type, "upsert": "true"}
        b.upload(self._relative_key(bucket, key), body, opts)

    def public_url(self, *, bucket: str, key: str) -> str:
        b = self._bucket(bucket)
        res = b.get_public_url(self._relative_key(bucket, key))
        url = None
        if isinstance(res, str):
            url = res
        elif isinstance(res, dict):
            url = self._first_key(res, "publicUrl", "publicURL", "public_url")
            data = res.get("data") if "data" in res else None
            if url is None and isinstance(data, dict):
                url = self._first_key(data, "publicUrl", "publicURL", "public_url")
        if not url:
            raise RuntimeError("failed_to_resolve_public_url")
        return str(url).rstrip("?")


__all__ = ["AssetStorage", "SupabaseAssetStorage"]
