"""
Resumption triggers: pick up pending submissions once an account is verified.

Entry points (all funnel into `resume_pending_provisioning`):
    - sign-in success
    - sign-in page mount (existing session)
    - dashboard mount

Runs for the same account are serialized by a per-user lock, and the pending
entry is read inside the lock, so racing triggers see "absent" after the first
successful run. Entries are cleared only when provisioning reports success; a
hard failure keeps the entry for the next trigger.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional
import logging

from eduxperience.identity_access.domain import PENDING_ROLES
from eduxperience.identity_access.gotrue_client import Account
from eduxperience.onboarding.pending import PendingSubmissionStore
from eduxperience.onboarding.provisioning import ProvisioningExecutor


logger = logging.getLogger("eduxperience.onboarding.resumption")

TITLE_CREATED = "Profile Created Successfully!"
TITLE_FAILED = "Profile Creation Failed"
DESCRIPTION_FAILED = "There was an issue creating your profile. Please contact support."

TRIGGER_SIGN_IN = "sign_in"
TRIGGER_SIGN_IN_PAGE = "sign_in_page"
TRIGGER_DASHBOARD = "dashboard"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"


_locks_guard = Lock()
# user id -> [lock, number of runs holding or waiting on it]
_user_locks: Dict[str, List[Any]] = {}


@contextmanager
def _user_lock(user_id: str) -> Iterator[None]:
    """Serialize runs for one user; the entry is dropped once no run needs it."""
    with _locks_guard:
        entry = _user_locks.setdefault(user_id, [Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _locks_guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _user_locks[user_id]


def resume_pending_provisioning(
    account: Optional[Account],
    store: PendingSubmissionStore,
    executor: ProvisioningExecutor,
    *,
    trigger: str,
) -> List[Notification]:
    """Provision every pending submission of a verified account.

    Returns the notifications to show; an empty list when nothing was pending
    or the account is not verified yet.
    """
    if account is None or not account.email_confirmed:
        return []
    notes: List[Notification] = []
    with _user_lock(account.id):
        for role in PENDING_ROLES:
            pending = store.read(role)
            if pending is None:
                continue
            logger.info("Resuming pending %s profile (trigger=%s)", role, trigger)
            try:
                result = executor.provision(account.id, role, pending.form_data)
            except Exception as exc:
                logger.error("Provisioning %s profile raised %s", role, exc.__class__.__name__)
                notes.append(Notification(TITLE_FAILED, DESCRIPTION_FAILED, "destructive"))
                continue
            if result.success:
                store.clear(role)
                notes.append(Notification(TITLE_CREATED, result.message))
            else:
                logger.warning("Pending %s profile kept for retry: %s", role, result.error)
                notes.append(Notification(TITLE_FAILED, DESCRIPTION_FAILED, "destructive"))
    return notes


def on_sign_in(account: Optional[Account], store: PendingSubmissionStore, executor: ProvisioningExecutor) -> List[Notification]:
    return resume_pending_provisioning(account, store, executor, trigger=TRIGGER_SIGN_IN)


def on_sign_in_page_mount(account: Optional[Account], store: PendingSubmissionStore, executor: ProvisioningExecutor) -> List[Notification]:
    return resume_pending_provisioning(account, store, executor, trigger=TRIGGER_SIGN_IN_PAGE)


def on_dashboard_mount(account: Optional[Account], store: PendingSubmissionStore, executor: ProvisioningExecutor) -> List[Notification]:
    return resume_pending_provisioning(account, store, executor, trigger=TRIGGER_DASHBOARD)


__all__ = [
    "Notification",
    "on_dashboard_mount",
    "on_sign_in",
    "on_sign_in_page_mount",
    "resume_pending_provisioning",
]
