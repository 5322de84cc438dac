"""Onboarding pipeline: pending submissions, email verification, provisioning and its resumption triggers."""

from eduxperience.onboarding.errors import RecordErrorKind, RecordStoreError, VerificationLinkError
from eduxperience.onboarding.pending import PendingSubmission, PendingSubmissionStore
from eduxperience.onboarding.provisioning import ProvisioningExecutor, ProvisioningResult
from eduxperience.onboarding.resumption import Notification, resume_pending_provisioning
from eduxperience.onboarding.verification import VerificationHandler, VerificationResult, VerificationState

__all__ = [
    "Notification",
    "PendingSubmission",
    "PendingSubmissionStore",
    "ProvisioningExecutor",
    "ProvisioningResult",
    "RecordErrorKind",
    "RecordStoreError",
    "VerificationHandler",
    "VerificationLinkError",
    "VerificationResult",
    "VerificationState",
    "resume_pending_provisioning",
]
