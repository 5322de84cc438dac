"""
Server-rendered pages for the onboarding flow.

All user-provided or provider-provided text is escaped with `html.escape`
before it is interpolated. Pages carry no scripts; the verification success
page advances with a meta refresh.
"""
from __future__ import annotations

from html import escape
from typing import Iterable, Optional

from eduxperience.onboarding.resumption import Notification


def _document(title: str, body: str, *, head_extra: str = "") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{escape(title)} - EduXperience</title>
  {head_extra}
</head>
<body class="auth-info">
  <main class="container">
{body}
  </main>
</body>
</html>
"""


def render_notifications(notes: Iterable[Notification]) -> str:
    items = []
    for note in notes:
        role = "alert" if note.variant == "destructive" else "status"
        items.append(
            f'<div class="toast toast--{escape(note.variant)}" role="{role}">'
            f"<strong>{escape(note.title)}</strong><p>{escape(note.description)}</p></div>"
        )
    return "\n".join(items)


def _error_block(error: Optional[str]) -> str:
    return f'<p class="form-error" role="alert">{escape(error)}</p>' if error else ""


def render_sign_up_page(*, error: Optional[str] = None, role: str = "student", email: str = "") -> str:
    options = "".join(
        f'<option value="{r}"{" selected" if r == role else ""}>{r.title()}</option>' for r in ("student", "tutor")
    )
    body = f"""
    <h1>Create your account</h1>
    {_error_block(error)}
    <form method="post" action="/auth/signup" enctype="multipart/form-data">
      <label>I am a <select name="role">{options}</select></label>
      <label>Full name <input name="fullName" required></label>
      <label>Email <input type="email" name="email" value="{escape(email)}" required></label>
      <label>Password <input type="password" name="password" required></label>
      <label>Confirm password <input type="password" name="confirmPassword" required></label>
      <label>City <input name="city"></label>
      <label>Area <input name="area"></label>
      <label>Profile photo <input type="file" name="profilePhoto" accept="image/*"></label>
      <button class="button button--primary" type="submit">Sign up</button>
    </form>
    <p>Already registered? <a href="/auth/login">Sign in</a></p>"""
    return _document("Sign up", body)


def render_check_email_page(email: str) -> str:
    body = f"""
    <h1>Check your email</h1>
    <p>We sent a verification link to <strong>{escape(email)}</strong>.
    Open it to verify your address; your profile is created after you sign in.</p>
    <p><a href="/auth/login">Go to sign in</a></p>"""
    return _document("Verify your email", body)


def render_sign_in_page(
    *,
    notifications: Iterable[Notification] = (),
    error: Optional[str] = None,
    signed_in_as: Optional[str] = None,
    email: str = "",
) -> str:
    if signed_in_as:
        main = f"""
    <p>Signed in as <strong>{escape(signed_in_as)}</strong>.</p>
    <p><a class="button button--primary" href="/dashboard">Go to dashboard</a> <a href="/auth/logout">Sign out</a></p>"""
    else:
        main = f"""
    <form method="post" action="/auth/login">
      <label>Email <input type="email" name="email" value="{escape(email)}" required></label>
      <label>Password <input type="password" name="password" required></label>
      <button class="button button--primary" type="submit">Sign in</button>
    </form>
    <p>New here? <a href="/auth/signup">Create an account</a></p>"""
    body = f"""
    <h1>Sign in</h1>
    {render_notifications(notifications)}
    {_error_block(error)}{main}"""
    return _document("Sign in", body)


def render_redirect_page(*, title: str, notifications: Iterable[Notification], target: str, delay_seconds: int) -> str:
    """Intermediate page that shows notifications and then follows `target`."""
    head = f'<meta http-equiv="refresh" content="{int(delay_seconds)};url={escape(target)}">' if delay_seconds > 0 else ""
    body = f"""
    <h1>{escape(title)}</h1>
    {render_notifications(notifications)}
    <p><a class="button button--primary" href="{escape(target)}">Continue</a></p>"""
    return _document(title, body, head_extra=head)


def render_verify_success_page(message: str, *, delay_seconds: int) -> str:
    head = (
        f'<meta http-equiv="refresh" content="{int(delay_seconds)};url=/auth/verify/continue">'
        if delay_seconds > 0
        else ""
    )
    hint = f"<p>You will be redirected in {int(delay_seconds)} seconds.</p>" if delay_seconds > 0 else ""
    body = f"""
    <h1>Email verified</h1>
    <p class="verify-message" role="status">{escape(message)}</p>
    {hint}
    <p><a class="button button--primary" href="/auth/verify/continue">Continue</a></p>"""
    return _document("Email verified", body, head_extra=head)


def render_verify_error_page(message: str) -> str:
    body = f"""
    <h1>Verification failed</h1>
    <p class="verify-message" role="alert">{escape(message)}</p>
    <p><a class="button button--primary" href="/auth/signup">Back to sign up</a> <a href="/auth/login">Go to sign in</a></p>"""
    return _document("Verification failed", body)


def render_dashboard_page(*, email: str, role: Optional[str], notifications: Iterable[Notification] = ()) -> str:
    role_line = f"<p>Role: {escape(role)}</p>" if role else ""
    body = f"""
    <h1>Dashboard</h1>
    {render_notifications(notifications)}
    <p>Welcome, <strong>{escape(email)}</strong>.</p>
    {role_line}
    <p><a href="/auth/logout">Sign out</a></p>"""
    return _document("Dashboard", body)
