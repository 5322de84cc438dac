"""
Helper for wiring the Supabase-backed profile photo storage.

Why:
    Provisioning uploads the optional profile photo after verification. The
    adapter needs the service role key, which is optional in development; when
    it is missing the photo step is skipped and provisioning is unaffected.

Security:
    Requires SUPABASE_SERVICE_ROLE_KEY and SUPABASE_URL environment variables.
    The helper only wires server-side adapters; no secrets are exposed to clients.
"""
from __future__ import annotations

import logging
import os

from eduxperience.onboarding.storage_supabase import AssetStorage, SupabaseAssetStorage


logger = logging.getLogger("eduxperience.web")


def wire_asset_storage_if_configured() -> AssetStorage | None:
    """Build the Supabase asset storage adapter when configured.

    Behavior:
        - Returns the adapter when the supabase client could be created.
        - Returns None when not configured or the client cannot be created
          (e.g. local dev keys that are not JWTs). Safe to call repeatedly.
    """
    url = (os.getenv("SUPABASE_URL") or "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not url or not key:
        return None
    try:
        # Lazy import keeps the client library out of non-storage paths.
        from supabase import create_client

        client = create_client(url, key)
    except Exception as exc:
        logger.warning("Supabase storage client unavailable: %s", exc.__class__.__name__)
        return None
    logger.info("Asset storage wired: Supabase")
    return SupabaseAssetStorage(client)


__all__ = ["wire_asset_storage_if_configured"]
