"""
Shared web security helpers (FastAPI-agnostic utilities for routes).

Contains the same-origin check used by the Auth, Teaching and Learning
adapters for write requests.
"""
from __future__ import annotations

import os
from urllib.parse import urlparse

from fastapi import Request


def _default_port(scheme: str) -> int:
    return 443 if scheme == "https" else 80


def _parse_origin(url: str) -> tuple[str, str, int]:
    p = urlparse(url)
    if not p.scheme or not p.hostname:
        raise ValueError("invalid_origin")
    scheme = p.scheme.lower()
    return scheme, p.hostname.lower(), int(p.port or _default_port(scheme))


def _server_origin(request: Request) -> tuple[str, str, int]:
    trust_proxy = (os.getenv("AULA_TRUST_PROXY", "false") or "").lower() == "true"
    if trust_proxy:
        proto = (request.headers.get("x-forwarded-proto") or "").split(",")[0].strip()
        host = (request.headers.get("x-forwarded-host") or "").split(",")[0].strip()
        if proto and host:
            return _parse_origin(f"{proto}://{host}")
    scheme = (request.url.scheme or "http").lower()
    host = (request.url.hostname or "").lower()
    return scheme, host, int(request.url.port or _default_port(scheme))


def _is_same_origin(request: Request) -> bool:
    """Verify same-origin using Origin or Referer headers.

    Behavior:
    - If Origin is present, require exact scheme/host/port match with server.
    - Else if Referer is present, validate its origin similarly.
    - Else (no headers): allow to not break non-browser clients.
    Proxy awareness: Only trust X-Forwarded-* when AULA_TRUST_PROXY=true.
    """
    header = request.headers.get("origin") or request.headers.get("referer")
    if not header:
        return True
    try:
        return _parse_origin(header) == _server_origin(request)
    except ValueError:
        return False
