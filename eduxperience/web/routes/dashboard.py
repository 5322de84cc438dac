"""
Dashboard route: the signed-in landing page.

Mounting the dashboard is one of the resumption triggers; a verified account
with a pending submission gets its profile rows created here when neither the
sign-in page nor the sign-in itself has done so yet.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from eduxperience.identity_access.gotrue_client import IdentityServiceError
from eduxperience.onboarding.resumption import on_dashboard_mount
from eduxperience.web import pages


dashboard_router = APIRouter(tags=["Dashboard"])
logger = logging.getLogger("eduxperience.web.dashboard")


@dashboard_router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request):
    from eduxperience.web import main

    rec = request.state.session
    try:
        account = main.IDENTITY.get_current_user(rec.access_token)
    except IdentityServiceError as exc:
        logger.warning("Current user lookup failed: status=%s", exc.status)
        account = None
    if account is None:
        # Token no longer accepted by the identity service: start over.
        main.SESSION_STORE.delete(rec.session_id)
        resp = RedirectResponse(url="/auth/login", status_code=302)
        main.clear_session_cookie(resp)
        return resp
    notes = on_dashboard_mount(account, main.pending_store_for(request), main.build_executor(rec.access_token))
    role = account.metadata.get("role") if isinstance(account.metadata.get("role"), str) else None
    return HTMLResponse(
        pages.render_dashboard_page(email=account.email, role=role, notifications=notes),
        headers={"Cache-Control": "private, no-store"},
    )
