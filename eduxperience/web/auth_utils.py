"""
Cookie flags for `edux_session` and `edux_client`.

`edux_session` holds the server-side session id after sign-in or after a
verification link established a session. `edux_client` is the long-lived
opaque id that scopes pending submissions and verification markers.

Both cookies are always Secure and HttpOnly (set in `main._set_cookie`).
SameSite is "lax": the verification link arrives as a cross-site top-level
navigation from the mail client, and "strict" would hide `edux_client` from
that request, so the verification page would not find the pending submission.
"""

from __future__ import annotations


def cookie_opts(environment: str) -> dict:
    """Return `{"secure", "samesite"}` for the given `EDUX_ENV`; identical in every environment."""
    return {"secure": True, "samesite": "lax"}
