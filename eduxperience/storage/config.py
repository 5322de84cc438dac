"""
Centralized storage configuration for buckets and upload limits.

Intent:
    Provide a single source of truth for the profile photo bucket name and
    its environment-variable override. Prevents drift between sign-up (which
    captures the photo) and provisioning (which uploads it).

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


PROFILE_PHOTOS_BUCKET_DEFAULT = "profile-photos"


def get_profile_photos_bucket() -> str:
    """Return the configured profile photo bucket name.

    Env:
        PROFILE_PHOTOS_BUCKET – optional override; otherwise defaults to
        PROFILE_PHOTOS_BUCKET_DEFAULT.
    """
    return (os.getenv("PROFILE_PHOTOS_BUCKET") or PROFILE_PHOTOS_BUCKET_DEFAULT).strip()


__all__ = [
    "PROFILE_PHOTOS_BUCKET_DEFAULT",
    "get_profile_photos_bucket",
]

# --- Size limits --------------------------------------------------------------

def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_profile_photo_max_bytes() -> int:
    """Maximum profile photo size kept with a pending submission (default/clamped 2 MiB)."""
    contract_max = 2 * 1024 * 1024
    return _parse_int_env("PROFILE_PHOTO_MAX_BYTES", contract_max, contract_max=contract_max)


__all__ += ["get_profile_photo_max_bytes"]
