"""
Error taxonomy for the onboarding pipeline.

Kinds:
    - VerificationLinkError: bad or missing verification proof. Fatal to the
      verification step; the user retries from the email.
    - RecordStoreError: a rejected write. `kind` separates policy rejections
      (tolerated, partial success) from conflicts and hard failures.
    - Expired pending entries and best-effort failures (metadata update, asset
      upload) are logged where they happen and never raised to callers.
"""
from __future__ import annotations

from enum import Enum


INVALID_VERIFICATION_LINK = "Invalid verification link. Please check your email and try again."


class VerificationLinkError(ValueError):
    def __init__(self, message: str = INVALID_VERIFICATION_LINK) -> None:
        super().__init__(message)
        self.message = message


class RecordErrorKind(str, Enum):
    POLICY_REJECTED = "policy_rejected"
    CONFLICT = "conflict"
    FAILURE = "failure"


class RecordStoreError(Exception):
    """Structured failure from the record store.

    Parameters:
        kind: classification used by the provisioning executor.
        message: provider message (safe to log, may be shown to users).
        code: provider error code such as a PostgreSQL SQLSTATE, if any.
    """

    def __init__(self, kind: RecordErrorKind, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code


__all__ = [
    "INVALID_VERIFICATION_LINK",
    "RecordErrorKind",
    "RecordStoreError",
    "VerificationLinkError",
]
