"""
Authentication routes (router-only module).

Why:
    The managed backend issues access tokens. The browser exchanges one for an
    opaque server-side session cookie; every later request resolves that
    cookie to a ``SessionRecord`` in the auth middleware.

Notes:
    - Session state lives in ``aula.web.main.SESSION_STORE``; it is imported
      inside handlers so tests can swap the store on the module.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from aula.errors import GatewayError
from aula.gateway.config import get_session_ttl_seconds
from aula.gateway.wiring import get_gateway
from aula.identity_access.domain import primary_role
from aula.identity_access.provider import get_identity_provider, resolve_identity

from .common import _csrf_guard, _json_private, _no_content, _private_error

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("aula.web.auth")


class SessionCreate(BaseModel):
    access_token: str = Field(..., min_length=1, max_length=4096)


@auth_router.post("/auth/session")
async def create_session(request: Request, payload: SessionCreate):
    """Exchange a backend access token for a session cookie.

    Behavior:
        - 201 with the session identity; sets ``aula_session`` (HttpOnly, Secure, SameSite=Lax)
        - 401 when the token is rejected
        - 503 when no identity provider is configured
        - 502 when the auth service cannot be reached
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    provider = get_identity_provider()
    if provider is None:
        return _private_error({"error": "service_unavailable", "detail": "identity_provider_unconfigured"}, status_code=503)
    try:
        identity = resolve_identity(provider.verify(payload.access_token), get_gateway())
    except PermissionError:
        return _private_error({"error": "unauthenticated", "detail": "invalid_token"}, status_code=401)
    except GatewayError as exc:
        return _private_error({"error": "gateway_error", "detail": str(exc)}, status_code=502)

    from aula.web import main

    ttl = get_session_ttl_seconds()
    rec = main.SESSION_STORE.create(sub=identity.sub, name=identity.name, roles=identity.roles, ttl_seconds=ttl)
    logger.info("Session created (role=%s)", primary_role(rec.roles))
    response = _json_private(
        {
            "sub": rec.sub,
            "name": rec.name,
            "role": primary_role(rec.roles),
            "roles": rec.roles,
            "expires_at": rec.expires_at,
        },
        status_code=201,
    )
    main._set_session_cookie(response, rec.session_id, max_age=ttl)
    return response


@auth_router.post("/auth/logout")
async def logout(request: Request):
    """Invalidate the server-side session and clear the cookie (idempotent, 204)."""
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    from aula.web import main

    sid = request.cookies.get(main.SESSION_COOKIE_NAME)
    if sid:
        main.SESSION_STORE.delete(sid)
    response = _no_content()
    main._clear_session_cookie(response)
    return response
