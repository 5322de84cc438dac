"""
Shared web security helpers (FastAPI-agnostic utilities for routes).

Contains the CSRF same-origin check used by the sign-up and sign-in form
posts. Keeping a single implementation avoids security drift.
"""
from __future__ import annotations

from urllib.parse import urlparse
import os

from fastapi import Request


Origin = tuple[str, str, int]


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> Origin:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port if p.port is not None else _default_port(scheme))


def _server_origin(request: Request) -> Origin:
    """Origin the browser sees; X-Forwarded-* only when EDUX_TRUST_PROXY=true."""
    trust_proxy = (os.getenv("EDUX_TRUST_PROXY", "false") or "").lower() == "true"
    if not trust_proxy:
        scheme = (request.url.scheme or "http").lower()
        port = int(request.url.port) if request.url.port else _default_port(scheme)
        return scheme, (request.url.hostname or "").lower(), port

    proto = (request.headers.get("x-forwarded-proto") or request.url.scheme or "").split(",")[0].strip()
    host = (request.headers.get("x-forwarded-host") or request.headers.get("host") or "").split(",")[0].strip()
    scheme = (proto or "http").lower()
    if ":" in host:
        host, port_str = host.rsplit(":", 1)
        try:
            port = int(port_str)
        except ValueError:
            port = _default_port(scheme)
    else:
        port = int(request.url.port) if request.url.port else _default_port(scheme)
    host = (host or request.url.hostname or "").lower()
    xf_port = (request.headers.get("x-forwarded-port") or "").split(",")[0].strip()
    if xf_port:
        try:
            port = int(xf_port)
        except ValueError:
            port = _default_port(scheme)
    return scheme, host, port


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    """
    try:
        server = _server_origin(request)
        origin_val = request.headers.get("origin")
        if origin_val:
            return _parse_origin(origin_val) == server
        referer_val = request.headers.get("referer")
        if referer_val:
            return _parse_origin(referer_val) == server
        return True
    except ValueError:
        return False
