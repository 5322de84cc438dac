"""
Authentication and onboarding routes (router-only module).

Why:
    Keep sign-up, sign-in, verification and logout in a dedicated router.
    Shared state (session store, client storage, identity client, executor
    factory) lives in `eduxperience.web.main` and is imported inside the
    handlers so tests can monkeypatch it there.

Flow:
    sign-up saves the pending submission, then creates the account. The email
    link lands on `/auth/verify`, which only verifies. Its Continue action leads
    to `/auth/login`, whose mount trigger provisions pending submissions for a
    verified session; `POST /auth/login` does the same after a fresh sign-in.
"""

from __future__ import annotations

import base64
import logging
import os
import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from eduxperience.identity_access.domain import ALLOWED_ROLES, PENDING_ROLES
from eduxperience.identity_access.gotrue_client import Account, IdentityServiceError
from eduxperience.onboarding.provisioning import PHOTO_FIELD
from eduxperience.onboarding.resumption import Notification, on_sign_in, on_sign_in_page_mount
from eduxperience.onboarding.verification import VerificationHandler
from eduxperience.storage.config import get_profile_photo_max_bytes
from eduxperience.web import pages
from eduxperience.web.routes.security import _is_same_origin


auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("eduxperience.web.auth")

NO_STORE = {"Cache-Control": "private, no-store"}

MESSAGE_ALREADY_REGISTERED = "An account with this email already exists. Please try signing in instead."
TITLE_LOGIN_OK = "Login Successful!"
DESCRIPTION_LOGIN_OK = "Welcome back to EduXperience."
TITLE_LOGIN_FAILED = "Login Failed"

# Form fields that are always lists, even with a single checked box.
LIST_FIELDS = frozenset({"subjects", "studentLevels", "curriculum", "availableDays", "timeSlots"})
# Never persisted with the pending submission.
SECRET_FIELDS = frozenset({"password", "confirmPassword"})

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_SPECIAL_CHARS = "@$!%*?&"


# --- Sign-up validation -----------------------------------------------------------


def _parse_allowed_registration_domains(raw: str | None) -> set[str]:
    """Parse ALLOWED_REGISTRATION_DOMAINS ("@school.edu, @example.org") into a set."""
    if not raw:
        return set()
    items = [part.strip().lower() for part in str(raw).split(",")]
    return {item if item.startswith("@") else f"@{item}" for item in items if item}


def _is_allowed_registration_email(email: str, allowed_domains: set[str]) -> bool:
    """Return True if the email's domain is in the allow-list (empty list = no restriction)."""
    if not allowed_domains:
        return True
    normalized = (email or "").strip().lower()
    if "@" not in normalized:
        return False
    local, domain = normalized.rsplit("@", 1)
    if not local or not domain:
        return False
    return f"@{domain}" in allowed_domains


def password_problem(password: str) -> Optional[str]:
    """Return the first violated password rule, or None when the password is acceptable."""
    if not password:
        return "Password is required"
    if len(password) < 8:
        return "Password must be at least 8 characters"
    if not any(c.islower() for c in password):
        return "Password must contain at least one lowercase letter"
    if not any(c.isupper() for c in password):
        return "Password must contain at least one uppercase letter"
    if not any(c.isdigit() for c in password):
        return "Password must contain at least one number"
    if not any(c in _SPECIAL_CHARS for c in password):
        return "Password must contain at least one special character"
    return None


def _validate_sign_up(role: str, email: str, password: str, confirm: Optional[str]) -> Optional[str]:
    if role not in ALLOWED_ROLES:
        return "Please choose a valid account type"
    if role not in PENDING_ROLES:
        return "Institutions register through the institution sign-up"
    if not email:
        return "Email is required"
    if not _EMAIL_RE.match(email):
        return "Please enter a valid email address"
    allowed = _parse_allowed_registration_domains(os.getenv("ALLOWED_REGISTRATION_DOMAINS"))
    if not _is_allowed_registration_email(email, allowed):
        return f"Registration is limited to these email domains: {', '.join(sorted(allowed))}"
    problem = password_problem(password)
    if problem:
        return problem
    if confirm is not None and confirm != password:
        return "Passwords do not match"
    return None


async def _encode_photo(upload: Any) -> Optional[Dict[str, str]]:
    """Keep the photo with the pending submission as base64 so it survives the email round trip."""
    filename = str(getattr(upload, "filename", "") or "")
    if not filename:
        return None
    body = await upload.read()
    if not body:
        return None
    if len(body) > get_profile_photo_max_bytes():
        raise ValueError("Profile photo is too large")
    return {
        "filename": filename,
        "contentType": str(getattr(upload, "content_type", "") or "application/octet-stream"),
        "data": base64.b64encode(body).decode("ascii"),
    }


async def _read_sign_up_payload(request: Request) -> Dict[str, Any]:
    """Collect sign-up fields from a JSON body or a (multipart) form."""
    if (request.headers.get("content-type") or "").startswith("application/json"):
        data = await request.json()
        return dict(data) if isinstance(data, dict) else {}
    form = await request.form()
    payload: Dict[str, Any] = {}
    for key in set(form.keys()):
        values = form.getlist(key)
        if key == PHOTO_FIELD:
            payload[key] = await _encode_photo(values[0]) if values else None
            continue
        texts = [str(v) for v in values if isinstance(v, str)]
        payload[key] = texts if (key in LIST_FIELDS or len(texts) > 1) else (texts[0] if texts else "")
    return payload


# --- Routes -----------------------------------------------------------------------


@auth_router.get("/auth/signup", response_class=HTMLResponse)
async def auth_signup_form():
    return HTMLResponse(pages.render_sign_up_page(), headers=NO_STORE)


@auth_router.post("/auth/signup", response_class=HTMLResponse)
async def auth_signup(request: Request):
    """Save the pending submission, then create the unconfirmed account.

    Behavior:
        - 403 on cross-site posts; 400 with the reason on validation errors.
        - Passwords are never written to the pending submission.
        - When account creation fails the previous pending entry (or its
          absence) is put back, so a rejected resubmission neither provisions
          someone else's existing account nor drops an earlier sign-up.
    """
    from eduxperience.web import main

    if not _is_same_origin(request):
        return JSONResponse({"error": "forbidden", "detail": "csrf_violation"}, status_code=403, headers=NO_STORE)
    try:
        payload = await _read_sign_up_payload(request)
    except ValueError as exc:
        return HTMLResponse(pages.render_sign_up_page(error=str(exc)), status_code=400, headers=NO_STORE)

    role = str(payload.get("role") or "").strip().lower()
    email = str(payload.get("email") or "").strip()
    password = str(payload.get("password") or "")
    confirm = payload.get("confirmPassword")
    error = _validate_sign_up(role, email, password, None if confirm is None else str(confirm))
    if error:
        return HTMLResponse(pages.render_sign_up_page(error=error, email=email), status_code=400, headers=NO_STORE)

    form_data = {k: v for k, v in payload.items() if k not in SECRET_FIELDS and k != "role" and v is not None}
    form_data["email"] = email
    store = main.pending_store_for(request)
    previous = store.snapshot(role)
    store.save(role, form_data)
    try:
        main.IDENTITY.create_account(
            email=email,
            password=password,
            metadata={"role": role, "email_confirmed": False},
            redirect_to=f"{main.CONFIG.app_base}/auth/verify",
        )
    except IdentityServiceError as exc:
        store.restore(role, previous)
        message = MESSAGE_ALREADY_REGISTERED if "already registered" in exc.message.lower() else exc.message
        logger.info("Sign-up rejected by identity service: status=%s", exc.status)
        return HTMLResponse(
            pages.render_sign_up_page(error=message, role=role, email=email), status_code=400, headers=NO_STORE
        )
    logger.info("Account created for pending %s profile", role)
    return HTMLResponse(pages.render_check_email_page(email), headers=NO_STORE)


def _account_for(main, rec) -> Optional[Account]:
    try:
        account = main.IDENTITY.get_current_user(rec.access_token)
    except IdentityServiceError as exc:
        logger.warning("Current user lookup failed: status=%s", exc.status)
        return None
    if account is not None and account.email_confirmed and not rec.email_confirmed:
        main.SESSION_STORE.mark_confirmed(rec.session_id)
    return account


@auth_router.get("/auth/login", response_class=HTMLResponse)
async def auth_login_page(request: Request):
    """Sign-in page. With an existing session, resume pending provisioning first."""
    from eduxperience.web import main

    rec = main.current_session(request)
    if rec is None:
        return HTMLResponse(pages.render_sign_in_page(), headers=NO_STORE)
    account = _account_for(main, rec)
    if account is None:
        main.SESSION_STORE.delete(rec.session_id)
        resp = HTMLResponse(pages.render_sign_in_page(), headers=NO_STORE)
        main.clear_session_cookie(resp)
        return resp
    notes = on_sign_in_page_mount(account, main.pending_store_for(request), main.build_executor(rec.access_token))
    return HTMLResponse(pages.render_sign_in_page(notifications=notes, signed_in_as=account.email), headers=NO_STORE)


@auth_router.post("/auth/login", response_class=HTMLResponse)
async def auth_login(request: Request):
    """Password sign-in; provisions pending submissions before answering."""
    from eduxperience.web import main

    if not _is_same_origin(request):
        return JSONResponse({"error": "forbidden", "detail": "csrf_violation"}, status_code=403, headers=NO_STORE)
    form = await request.form()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    try:
        session = main.IDENTITY.sign_in(email=email, password=password)
        account = session.account or main.IDENTITY.get_current_user(session.access_token)
        if account is None:
            raise IdentityServiceError("User not found")
    except IdentityServiceError as exc:
        logger.info("Sign-in failed: status=%s", exc.status)
        note = Notification(TITLE_LOGIN_FAILED, exc.message, "destructive")
        return HTMLResponse(
            pages.render_sign_in_page(notifications=[note], email=email), status_code=401, headers=NO_STORE
        )

    rec = main.SESSION_STORE.create(
        user_id=account.id,
        email=account.email,
        email_confirmed=account.email_confirmed,
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        ttl_seconds=session.expires_in or main.SESSION_TTL_SECONDS,
    )
    notes = [Notification(TITLE_LOGIN_OK, DESCRIPTION_LOGIN_OK)]
    notes += on_sign_in(account, main.pending_store_for(request), main.build_executor(session.access_token))
    resp = HTMLResponse(
        pages.render_redirect_page(
            title="Signed in",
            notifications=notes,
            target="/dashboard",
            delay_seconds=main.CONFIG.verify_auto_advance_seconds,
        ),
        headers=NO_STORE,
    )
    main.set_session_cookie(resp, rec.session_id, max_age=rec.ttl_seconds)
    return resp


@auth_router.get("/auth/verify", response_class=HTMLResponse)
async def auth_verify(request: Request):
    """Landing page of the verification email.

    Success establishes a session and renders a page that advances to
    `/auth/verify/continue` automatically and via a Continue link. Errors render
    the message with links back to sign-up and sign-in (HTTP 400).
    """
    from eduxperience.web import main

    rec = main.current_session(request)
    handler = VerificationHandler(main.IDENTITY, main.pending_store_for(request))
    result = handler.verify(
        dict(request.query_params),
        current_session=main.as_auth_session(rec) if rec else None,
    )
    if not result.ok:
        return HTMLResponse(pages.render_verify_error_page(result.message), status_code=400, headers=NO_STORE)

    resp = HTMLResponse(
        pages.render_verify_success_page(result.message, delay_seconds=main.CONFIG.verify_auto_advance_seconds),
        headers=NO_STORE,
    )
    session, account = result.session, result.account
    if rec is not None and account is not None and rec.user_id == account.id:
        main.SESSION_STORE.mark_confirmed(rec.session_id)
    elif session is not None and account is not None and session.access_token:
        new_rec = main.SESSION_STORE.create(
            user_id=account.id,
            email=account.email,
            email_confirmed=True,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            ttl_seconds=session.expires_in or main.SESSION_TTL_SECONDS,
        )
        main.set_session_cookie(resp, new_rec.session_id, max_age=new_rec.ttl_seconds)
    return resp


@auth_router.get("/auth/verify/continue")
async def auth_verify_continue():
    """Shared target of the auto-advance and the Continue link."""
    return RedirectResponse(url="/auth/login", status_code=303, headers=NO_STORE)


@auth_router.get("/auth/verify/status")
async def auth_verify_status(request: Request):
    """Report whether this client has completed verification (re-check button)."""
    from eduxperience.web import main

    user_id = main.pending_store_for(request).verified_user_id()
    return JSONResponse({"email_verified": user_id is not None, "user_id": user_id}, headers=NO_STORE)


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    from eduxperience.web import main

    sid = request.cookies.get(main.SESSION_COOKIE_NAME)
    if sid:
        main.SESSION_STORE.delete(sid)
    resp = RedirectResponse(url="/auth/login", status_code=303, headers=NO_STORE)
    main.clear_session_cookie(resp)
    return resp
