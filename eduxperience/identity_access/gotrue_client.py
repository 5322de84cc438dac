"""
Minimal Supabase Auth (GoTrue) client for account creation and verification.

Why: Keep web framework independent identity calls in a separate module. The
web adapter (FastAPI) and the onboarding use cases call into this client to
create accounts, sign in, read the current user and redeem email verification
proofs. Password hashing, token issuance and email delivery stay with the
identity provider.

Security:
- Uses the public anon key as `apikey`; user-scoped calls add the user's
  access token as Bearer. The service role key is never used here.
- Do not log passwords or tokens. Errors carry the provider message only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

# Small indirection to ease monkeypatching in tests
import requests as http


def http_request(method: str, url: str, *, headers: Dict[str, str], json: Any = None, params: Dict[str, str] | None = None, timeout: float = 10.0):
    return http.request(method, url, headers=headers, json=json, params=params, timeout=timeout)


class IdentityServiceError(Exception):
    """Raised when the identity provider rejects a call.

    `message` is the provider's human-readable text (surfaced verbatim to users
    on the verification error page); `status` is the HTTP status if any.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass(frozen=True)
class GoTrueConfig:
    base_url: str  # project URL, e.g. https://xyz.supabase.co
    anon_key: str
    timeout_seconds: float = 10.0

    @property
    def auth_base(self) -> str:
        return f"{self.base_url.rstrip('/')}/auth/v1"


@dataclass(frozen=True)
class Account:
    id: str
    email: str
    email_confirmed: bool
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Account":
        meta = data.get("user_metadata")
        return cls(
            id=str(data.get("id") or ""),
            email=str(data.get("email") or ""),
            email_confirmed=bool(data.get("email_confirmed_at")),
            metadata=dict(meta) if isinstance(meta, dict) else {},
        )


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    expires_in: Optional[int]
    account: Optional[Account]

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "AuthSession":
        user = data.get("user")
        try:
            expires_in = int(data["expires_in"]) if data.get("expires_in") is not None else None
        except (TypeError, ValueError):
            expires_in = None
        return cls(
            access_token=str(data.get("access_token") or ""),
            refresh_token=str(data.get("refresh_token") or ""),
            expires_in=expires_in,
            account=Account.from_payload(user) if isinstance(user, dict) else None,
        )


# --- Verification proofs -------------------------------------------------------


@dataclass(frozen=True)
class TokenPairProof:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class OneTimeTokenProof:
    token: str
    type: str = "email"


@dataclass(frozen=True)
class TokenHashProof:
    token_hash: str
    type: str = "email"


VerificationProof = Union[TokenPairProof, OneTimeTokenProof, TokenHashProof]


def _error_message(resp) -> str:
    """Extract the provider message from a GoTrue error response."""
    try:
        body = resp.json()
    except Exception:
        body = None
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    return f"identity_service_error_{getattr(resp, 'status_code', 'unknown')}"


class GoTrueClient:
    def __init__(self, config: GoTrueConfig) -> None:
        self.cfg = config

    def _headers(self, access_token: str | None = None) -> Dict[str, str]:
        headers = {"apikey": self.cfg.anon_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.cfg.anon_key}"
        return headers

    def _call(self, method: str, path: str, *, access_token: str | None = None, json: Any = None, params: Dict[str, str] | None = None):
        url = f"{self.cfg.auth_base}{path}"
        try:
            resp = http_request(method, url, headers=self._headers(access_token), json=json, params=params, timeout=self.cfg.timeout_seconds)
        except http.RequestException as exc:
            raise IdentityServiceError(f"Identity service unavailable ({exc.__class__.__name__})") from exc
        if resp.status_code >= 400:
            raise IdentityServiceError(_error_message(resp), status=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return {}

    def create_account(self, *, email: str, password: str, metadata: Dict[str, Any] | None = None, redirect_to: str | None = None) -> Account:
        """Create an unconfirmed account; the provider sends the verification email.

        Raises IdentityServiceError (e.g. "User already registered").
        """
        params = {"redirect_to": redirect_to} if redirect_to else None
        payload = {"email": email, "password": password, "data": dict(metadata or {})}
        data = self._call("POST", "/signup", json=payload, params=params)
        # With email confirmation enabled GoTrue returns the bare user; with
        # autoconfirm it returns a session that embeds the user.
        user = data.get("user") if isinstance(data.get("user"), dict) else data
        account = Account.from_payload(user if isinstance(user, dict) else {})
        if not account.id:
            raise IdentityServiceError("Account creation returned no user")
        return account

    def sign_in(self, *, email: str, password: str) -> AuthSession:
        data = self._call("POST", "/token", json={"email": email, "password": password}, params={"grant_type": "password"})
        return AuthSession.from_payload(data)

    def refresh_session(self, refresh_token: str) -> AuthSession:
        data = self._call("POST", "/token", json={"refresh_token": refresh_token}, params={"grant_type": "refresh_token"})
        return AuthSession.from_payload(data)

    def get_current_user(self, access_token: str) -> Optional[Account]:
        """Return the account behind `access_token`, or None when the token is not accepted."""
        if not access_token:
            return None
        try:
            data = self._call("GET", "/user", access_token=access_token)
        except IdentityServiceError as exc:
            if exc.status in (401, 403):
                return None
            raise
        account = Account.from_payload(data if isinstance(data, dict) else {})
        return account if account.id else None

    def redeem_verification(self, proof: VerificationProof) -> AuthSession:
        """Redeem a verification proof and return the established session.

        Behavior:
            - Token pair: validate the access token; if it is no longer accepted,
              exchange the refresh token for a fresh session.
            - One-time token / token hash: `POST /verify` as an email OTP.
        """
        if isinstance(proof, TokenPairProof):
            account = self.get_current_user(proof.access_token)
            if account is None:
                return self.refresh_session(proof.refresh_token)
            return AuthSession(access_token=proof.access_token, refresh_token=proof.refresh_token, expires_in=None, account=account)
        if isinstance(proof, OneTimeTokenProof):
            token_hash, otp_type = proof.token, proof.type
        elif isinstance(proof, TokenHashProof):
            token_hash, otp_type = proof.token_hash, proof.type
        else:
            raise IdentityServiceError("Unsupported verification proof")
        data = self._call("POST", "/verify", json={"type": otp_type, "token_hash": token_hash})
        return AuthSession.from_payload(data)

    def update_user_metadata(self, access_token: str, patch: Dict[str, Any]) -> None:
        self._call("PUT", "/user", access_token=access_token, json={"data": dict(patch)})


__all__ = [
    "Account",
    "AuthSession",
    "GoTrueClient",
    "GoTrueConfig",
    "IdentityServiceError",
    "OneTimeTokenProof",
    "TokenHashProof",
    "TokenPairProof",
    "VerificationProof",
]
