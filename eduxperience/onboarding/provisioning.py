"""
Provisioning executor: materialize profile rows for a verified account.

Intent:
    Turn a pending registration form into the base profile row (`profiles`)
    and the role row (`tutor_profiles` / `student_profiles`) once the account's
    email address is verified.

Behavior:
    - Both inserts are attempted, sequentially, base row first. The second
      insert runs regardless of the first outcome because the two rows are
      governed by independent access policies.
    - Each insert is classified as created, already existing, rejected by
      policy, or hard failure. The aggregate outcome depends only on the set
      of classifications, never on their order.
    - Policy rejections are tolerated: the account is valid and usable, only
      profile completeness is deferred until an admin steps in.
    - A hard failure in either step yields `success=False`; the caller must
      keep the pending submission so a retry remains possible.
    - A unique violation counts as created, so re-running for an already
      provisioned user is not reported as an error.
    - The optional profile photo is uploaded only after a successful outcome;
      upload failures are logged and swallowed.

Permissions:
    The record store is bound to the user's own access token; row-level
    security decides which rows may be written.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import base64
import logging
import mimetypes
import re

from eduxperience.onboarding.errors import RecordErrorKind, RecordStoreError
from eduxperience.onboarding.records import RecordStore
from eduxperience.onboarding.storage_supabase import AssetStorage
from eduxperience.storage.config import get_profile_photos_bucket


logger = logging.getLogger("eduxperience.onboarding.provisioning")

MESSAGE_CREATED = "Profile created successfully"
MESSAGE_PARTIAL = "Profile partially created. Some features may be limited until admin approval."
MESSAGE_PENDING_APPROVAL = (
    "User account created successfully. Profile creation is pending admin approval due to security policies."
)

PROFILES_TABLE = "profiles"
ROLE_TABLES = {
    "tutor": "tutor_profiles",
    "student": "student_profiles",
}
PHOTO_FIELD = "profilePhoto"


class InsertOutcome(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    POLICY_REJECTED = "policy_rejected"
    HARD_FAILURE = "hard_failure"


_PERSISTED = frozenset({InsertOutcome.CREATED, InsertOutcome.ALREADY_EXISTS})


@dataclass(frozen=True)
class StepResult:
    table: str
    outcome: InsertOutcome
    error: Optional[str] = None


@dataclass(frozen=True)
class ProvisioningResult:
    success: bool
    message: str
    error: Optional[str] = None
    steps: Tuple[StepResult, ...] = ()


# --- Row builders ---------------------------------------------------------------

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _leading_int(value: Any) -> int:
    """Parse a leading integer like "3-5" -> 3, "1500/hr" -> 1500; 0 when absent."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    m = _LEADING_INT.match(str(value or ""))
    return int(m.group(1)) if m else 0


def build_profile_row(user_id: str, role: str, form: Mapping[str, Any]) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "user_id": user_id,
        "full_name": form.get("fullName"),
        "city": form.get("city"),
        "area": form.get("area"),
        "role": role,
    }
    if role == "student":
        row["primary_language"] = form.get("primaryLanguage")
    return row


def build_role_row(user_id: str, role: str, form: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
    if role == "tutor":
        experience = str(form.get("teachingExperience") or "").split("-")[0]
        return ROLE_TABLES["tutor"], {
            "user_id": user_id,
            "bio": form.get("teachingMethodology"),
            "experience_years": _leading_int(experience),
            "hourly_rate_min": _leading_int(form.get("individualFee")),
            "hourly_rate_max": _leading_int(form.get("groupFee")),
            "teaching_mode": form.get("classType"),
            "qualifications": {
                "highest_qualification": form.get("highestQualification"),
                "university": form.get("universityName"),
                "year_of_passing": form.get("yearOfPassing"),
                "percentage": form.get("percentage"),
                "subjects": form.get("subjects"),
                "student_levels": form.get("studentLevels"),
                "curriculum": form.get("curriculum"),
            },
            "availability": {
                "available_days": form.get("availableDays"),
                "time_slots": form.get("timeSlots"),
                "max_travel_distance": form.get("maxTravelDistance"),
            },
            "verified": False,
        }
    if role == "student":
        return ROLE_TABLES["student"], {
            "user_id": user_id,
            "date_of_birth": form.get("dateOfBirth"),
            "education_level": form.get("educationLevel"),
            "instruction_language": form.get("primaryLanguage"),
            "onboarding_completed": False,
            "profile_completion_percentage": 0,
        }
    raise ValueError(f"unsupported role for provisioning: {role!r}")


# --- Outcome policy ---------------------------------------------------------------


def summarize(steps: Iterable[StepResult]) -> ProvisioningResult:
    """Aggregate step results into the caller-facing outcome (order independent)."""
    steps = tuple(steps)
    failures = [s for s in steps if s.outcome is InsertOutcome.HARD_FAILURE]
    if failures:
        error = "; ".join(f"{s.table}: {s.error}" for s in failures)
        return ProvisioningResult(success=False, message=f"Profile creation failed: {error}", error=error, steps=steps)
    persisted = sum(1 for s in steps if s.outcome in _PERSISTED)
    if persisted == len(steps):
        return ProvisioningResult(success=True, message=MESSAGE_CREATED, steps=steps)
    if persisted == 0:
        return ProvisioningResult(success=True, message=MESSAGE_PENDING_APPROVAL, steps=steps)
    return ProvisioningResult(success=True, message=MESSAGE_PARTIAL, steps=steps)


class ProvisioningExecutor:
    def __init__(self, records: RecordStore, assets: AssetStorage | None = None, *, photos_bucket: str | None = None) -> None:
        self._records = records
        self._assets = assets
        self._photos_bucket = photos_bucket or get_profile_photos_bucket()

    def _attempt(self, table: str, row: Mapping[str, Any]) -> StepResult:
        try:
            self._records.insert(table, row)
        except RecordStoreError as exc:
            if exc.kind is RecordErrorKind.POLICY_REJECTED:
                logger.info("Insert into %s rejected by access policy", table)
                return StepResult(table, InsertOutcome.POLICY_REJECTED, exc.message)
            if exc.kind is RecordErrorKind.CONFLICT:
                logger.info("Row in %s already exists; treating as created", table)
                return StepResult(table, InsertOutcome.ALREADY_EXISTS)
            logger.error("Insert into %s failed: %s", table, exc.message)
            return StepResult(table, InsertOutcome.HARD_FAILURE, exc.message)
        except Exception as exc:
            logger.error("Insert into %s failed: %s", table, exc.__class__.__name__)
            return StepResult(table, InsertOutcome.HARD_FAILURE, exc.__class__.__name__)
        return StepResult(table, InsertOutcome.CREATED)

    def provision(self, user_id: str, role: str, form_data: Mapping[str, Any]) -> ProvisioningResult:
        """Create the base and role profile rows for `user_id`.

        Returns:
            ProvisioningResult with `success` and a user-facing `message`.
            `success=False` only for hard failures; policy rejections still
            count as success (see module docstring).

        Raises:
            ValueError for roles without a provisioning recipe.
        """
        role_table, role_row = build_role_row(user_id, role, form_data)
        steps = (
            self._attempt(PROFILES_TABLE, build_profile_row(user_id, role, form_data)),
            self._attempt(role_table, role_row),
        )
        result = summarize(steps)
        logger.info(
            "Provisioned %s profile: success=%s outcomes=%s",
            role,
            result.success,
            ",".join(s.outcome.value for s in steps),
        )
        if result.success:
            photo = form_data.get(PHOTO_FIELD)
            if photo:
                self._upload_photo(user_id, photo)
        return result

    def _upload_photo(self, user_id: str, photo: Any) -> None:
        """Best-effort photo upload; never affects the provisioning outcome."""
        if self._assets is None:
            logger.info("Profile photo skipped: storage not configured")
            return
        try:
            if not isinstance(photo, dict):
                raise TypeError("profile photo must be an object")
            body = base64.b64decode(str(photo.get("data") or ""), validate=True)
            if not body:
                raise ValueError("empty profile photo")
            content_type = str(photo.get("contentType") or "application/octet-stream")
            key = f"{user_id}-profile.{photo_extension(str(photo.get('filename') or ''), content_type)}"
            self._assets.put_object(bucket=self._photos_bucket, key=key, body=body, content_type=content_type)
            url = self._assets.public_url(bucket=self._photos_bucket, key=key)
            self._records.update(PROFILES_TABLE, {"user_id": user_id}, {"profile_photo_url": url})
        except Exception as exc:
            logger.warning("Profile photo upload failed after verification: %s", exc.__class__.__name__)


def photo_extension(filename: str, content_type: str) -> str:
    if "." in filename:
        ext = filename.rsplit(".", 1)[-1].strip().lower()
        if ext and ext.isalnum():
            return ext
    guessed = mimetypes.guess_extension(content_type or "")
    return guessed.lstrip(".") if guessed else "bin"


__all__ = [
    "InsertOutcome",
    "MESSAGE_CREATED",
    "MESSAGE_PARTIAL",
    "MESSAGE_PENDING_APPROVAL",
    "PHOTO_FIELD",
    "ProvisioningExecutor",
    "ProvisioningResult",
    "StepResult",
    "build_profile_row",
    "build_role_row",
    "photo_extension",
    "summarize",
]
