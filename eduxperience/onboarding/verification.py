"""
Verification handler for inbound email-verification links.

States: verifying -> success | error (both terminal).

Behavior:
    - Exactly one recognized proof shape is taken from the query parameters,
      first match wins: access/refresh token pair, one-time `token`,
      `token_hash`. Without one the handler fails immediately and makes no
      remote calls.
    - The proof is redeemed against the identity service to establish a
      session. The service message is surfaced verbatim on failure, unless the
      caller already holds a session for a confirmed account: redeeming a link
      twice is not an error.
    - The confirmation marker is propagated to user metadata on a best-effort
      basis; the established session is the authoritative signal.
    - On success the "verified" flag and account id are written to the client
      storage medium so other tabs and later entry points can see them.

Provisioning is not started here; the continue action leads to the sign-in
page, whose resumption trigger picks up pending submissions.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Protocol
import logging

from eduxperience.identity_access.gotrue_client import (
    Account,
    AuthSession,
    IdentityServiceError,
    OneTimeTokenProof,
    TokenHashProof,
    TokenPairProof,
    VerificationProof,
)
from eduxperience.onboarding.errors import VerificationLinkError
from eduxperience.onboarding.pending import PendingSubmissionStore


logger = logging.getLogger("eduxperience.onboarding.verification")

MESSAGE_VERIFIED = "Email verified successfully!"
MESSAGE_USER_NOT_FOUND = "User not found after verification"
MESSAGE_GENERIC_FAILURE = "Failed to verify email. Please try again."


class IdentityService(Protocol):
    def redeem_verification(self, proof: VerificationProof) -> AuthSession: ...

    def get_current_user(self, access_token: str) -> Optional[Account]: ...

    def update_user_metadata(self, access_token: str, patch: dict) -> None: ...


class VerificationState(str, Enum):
    VERIFYING = "verifying"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class VerificationResult:
    state: VerificationState
    message: str
    account: Optional[Account] = None
    session: Optional[AuthSession] = None

    @property
    def ok(self) -> bool:
        return self.state is VerificationState.SUCCESS


def extract_proof(params: Mapping[str, str]) -> VerificationProof:
    """Pick the verification proof from URL query parameters.

    Raises:
        VerificationLinkError when no recognized combination is present.
    """
    def _get(name: str) -> str:
        return str(params.get(name) or "").strip()

    access_token, refresh_token = _get("access_token"), _get("refresh_token")
    if access_token and refresh_token:
        return TokenPairProof(access_token=access_token, refresh_token=refresh_token)
    if _get("token"):
        return OneTimeTokenProof(token=_get("token"))
    if _get("token_hash"):
        return TokenHashProof(token_hash=_get("token_hash"))
    raise VerificationLinkError()


class VerificationHandler:
    def __init__(self, identity: IdentityService, store: PendingSubmissionStore) -> None:
        self._identity = identity
        self._store = store

    def verify(self, params: Mapping[str, str], *, current_session: AuthSession | None = None) -> VerificationResult:
        """Run the verification state machine for one inbound link.

        Parameters:
            params: query parameters of the verification URL.
            current_session: session already held by this client, if any. Used
                to accept a link that was redeemed before.
        """
        try:
            proof = extract_proof(params)
        except VerificationLinkError as exc:
            logger.info("Verification link without recognized proof")
            return VerificationResult(VerificationState.ERROR, exc.message)

        logger.info("Redeeming verification proof: %s (type=%s)", proof.__class__.__name__, params.get("type") or "-")
        try:
            session = self._identity.redeem_verification(proof)
            account = session.account
            if account is None or not account.email_confirmed:
                account = self._identity.get_current_user(session.access_token)
        except IdentityServiceError as exc:
            previous = self._confirmed_account(current_session)
            if previous is None or current_session is None:
                logger.warning("Verification redemption failed: status=%s", exc.status)
                return VerificationResult(VerificationState.ERROR, exc.message)
            logger.info("Verification proof already redeemed for a confirmed account")
            session, account = current_session, previous
        except Exception as exc:
            logger.warning("Verification failed: %s", exc.__class__.__name__)
            return VerificationResult(VerificationState.ERROR, MESSAGE_GENERIC_FAILURE)

        if account is None:
            return VerificationResult(VerificationState.ERROR, MESSAGE_USER_NOT_FOUND)

        if not account.email_confirmed:
            try:
                self._identity.update_user_metadata(session.access_token, {"email_confirmed": True})
            except Exception as exc:
                logger.warning("Updating confirmation metadata failed: %s", exc.__class__.__name__)

        self._store.mark_verified(account.id)
        return VerificationResult(VerificationState.SUCCESS, MESSAGE_VERIFIED, account=account, session=session)

    def _confirmed_account(self, current_session: AuthSession | None) -> Optional[Account]:
        if current_session is None or not current_session.access_token:
            return None
        try:
            account = self._identity.get_current_user(current_session.access_token)
        except Exception as exc:
            logger.warning("Current session lookup failed: %s", exc.__class__.__name__)
            return None
        if account is None or not account.email_confirmed:
            return None
        return account


__all__ = [
    "MESSAGE_VERIFIED",
    "VerificationHandler",
    "VerificationResult",
    "VerificationState",
    "extract_proof",
]
