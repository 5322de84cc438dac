"""
Identity domain constants and simple helpers.

Why:
- Centralize account roles to avoid drift between sign-up, provisioning and
  the web layer.
- Keep terms aligned with the glossary (pending submission, resumption trigger).
"""

from __future__ import annotations

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "tutor", "institution"})

# Roles whose profile rows are provisioned after email verification.
# Institutions use the multi-page wizard and are not part of this pipeline.
PENDING_ROLES = ("tutor", "student")

__all__ = ["ALLOWED_ROLES", "PENDING_ROLES"]
