"""
In-memory stand-ins for the identity service, record store and asset storage.

They record every call so tests can assert on remote traffic (e.g. "no
remote calls for a link without proof") and can be scripted to fail.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import secrets
from typing import Any, Dict, List, Mapping, Optional, Tuple

from eduxperience.identity_access.gotrue_client import (
    Account,
    AuthSession,
    IdentityServiceError,
    OneTimeTokenProof,
    TokenHashProof,
    TokenPairProof,
)
from eduxperience.onboarding.errors import RecordErrorKind, RecordStoreError


@dataclass
class _FakeUser:
    id: str
    email: str
    password: str
    confirmed: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def account(self) -> Account:
        return Account(id=self.id, email=self.email, email_confirmed=self.confirmed, metadata=dict(self.metadata))


class FakeIdentityService:
    """Identity service double with single-use verification tokens."""

    def __init__(self) -> None:
        self.users: Dict[str, _FakeUser] = {}
        self.access_tokens: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.verification_tokens: Dict[str, str] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.fail_metadata_update = False

    # --- helpers for tests ------------------------------------------------------

    def add_user(self, email: str, password: str = "Secret1!", *, confirmed: bool = False, role: str = "tutor") -> _FakeUser:
        user = _FakeUser(id=f"user-{len(self.users) + 1}", email=email, password=password, confirmed=confirmed)
        user.metadata = {"role": role, "email_confirmed": confirmed}
        self.users[email] = user
        return user

    def issue_verification_token(self, email: str) -> str:
        token = secrets.token_hex(8)
        self.verification_tokens[token] = email
        return token

    def issue_session(self, user: _FakeUser) -> AuthSession:
        access, refresh = f"at-{secrets.token_hex(6)}", f"rt-{secrets.token_hex(6)}"
        self.access_tokens[access] = user.email
        self.refresh_tokens[refresh] = user.email
        return AuthSession(access_token=access, refresh_token=refresh, expires_in=3600, account=user.account())

    def remote_calls(self) -> List[str]:
        return [name for name, _ in self.calls]

    # --- identity service interface ---------------------------------------------

    def create_account(self, *, email: str, password: str, metadata=None, redirect_to=None) -> Account:
        self.calls.append(("create_account", {"email": email, "metadata": metadata, "redirect_to": redirect_to}))
        if email in self.users:
            raise IdentityServiceError("User already registered", status=422)
        user = self.add_user(email, password, role=str((metadata or {}).get("role") or ""))
        user.metadata = dict(metadata or {})
        self.issue_verification_token(email)
        return user.account()

    def sign_in(self, *, email: str, password: str) -> AuthSession:
        self.calls.append(("sign_in", email))
        user = self.users.get(email)
        if user is None or user.password != password:
            raise IdentityServiceError("Invalid login credentials", status=400)
        if not user.confirmed:
            raise IdentityServiceError("Email not confirmed", status=400)
        return self.issue_session(user)

    def get_current_user(self, access_token: str) -> Optional[Account]:
        self.calls.append(("get_current_user", access_token))
        email = self.access_tokens.get(access_token)
        return self.users[email].account() if email else None

    def redeem_verification(self, proof) -> AuthSession:
        self.calls.append(("redeem_verification", proof))
        if isinstance(proof, TokenPairProof):
            email = self.access_tokens.get(proof.access_token) or self.refresh_tokens.get(proof.refresh_token)
            if email is None:
                raise IdentityServiceError("Invalid Refresh Token: Refresh Token Not Found", status=400)
            user = self.users[email]
            user.confirmed = True
            return self.issue_session(user)
        if isinstance(proof, OneTimeTokenProof):
            token = proof.token
        elif isinstance(proof, TokenHashProof):
            token = proof.token_hash
        else:
            raise IdentityServiceError("Unsupported verification proof")
        email = self.verification_tokens.pop(token, None)
        if email is None:
            raise IdentityServiceError("Email link is invalid or has expired", status=403)
        user = self.users[email]
        user.confirmed = True
        return self.issue_session(user)

    def update_user_metadata(self, access_token: str, patch: Mapping[str, Any]) -> None:
        self.calls.append(("update_user_metadata", dict(patch)))
        if self.fail_metadata_update:
            raise IdentityServiceError("metadata update failed", status=500)
        email = self.access_tokens.get(access_token)
        if email:
            self.users[email].metadata.update(patch)


class FakeRecordStore:
    """Record store double; `errors` maps a table to the exception its insert raises."""

    def __init__(self, errors: Optional[Dict[str, Exception]] = None, *, update_error: Exception | None = None) -> None:
        self.errors = dict(errors or {})
        self.update_error = update_error
        self.inserts: List[Tuple[str, Dict[str, Any]]] = []
        self.updates: List[Tuple[str, Dict[str, Any], Dict[str, Any]]] = []

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        self.inserts.append((table, dict(row)))
        err = self.errors.get(table)
        if err is not None:
            raise err
        return dict(row)

    def update(self, table: str, match: Mapping[str, Any], patch: Mapping[str, Any]) -> None:
        self.updates.append((table, dict(match), dict(patch)))
        if self.update_error is not None:
            raise self.update_error

    def tables(self) -> List[str]:
        return [t for t, _ in self.inserts]


def policy_error(message: str = "new row violates row-level security policy") -> RecordStoreError:
    return RecordStoreError(RecordErrorKind.POLICY_REJECTED, message, code="42501")


def conflict_error() -> RecordStoreError:
    return RecordStoreError(RecordErrorKind.CONFLICT, "duplicate key value violates unique constraint", code="23505")


def hard_error(message: str = "connection reset") -> RecordStoreError:
    return RecordStoreError(RecordErrorKind.FAILURE, message)


class FakeAssetStorage:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}

    def put_object(self, *, bucket: str, key: str, body: bytes, content_type: str) -> None:
        if self.fail:
            raise RuntimeError("storage unavailable")
        self.objects[(bucket, key)] = (body, content_type)

    def public_url(self, *, bucket: str, key: str) -> str:
        return f"https://cdn.test/{bucket}/{key}"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
