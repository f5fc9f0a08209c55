"""
Helpers shared by the Auth, Teaching and Learning routers.

Responses:
    Every payload is user- or role-scoped, so JSON and error responses carry
    ``Cache-Control: private, no-store``.

Errors:
    Use cases raise the domain taxonomy from ``aula.errors`` (plus the
    built-in PermissionError). ``_domain_error`` maps it to the contract:

    - ValidationError → 400 ``bad_request`` (409 ``conflict`` for duplicates)
    - IndexOutOfRange → 400 ``index_out_of_range``
    - PermissionError → 403 ``forbidden``
    - NotFoundError   → 404 ``not_found`` with a ``redirect`` hint
    - GatewayError    → 502 ``gateway_error`` with the backend message
"""
from __future__ import annotations

import logging
import os

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from aula.errors import GatewayError, IndexOutOfRange, NotFoundError, ValidationError

from .security import _is_same_origin

logger = logging.getLogger("aula.web")

DOMAIN_ERRORS = (ValidationError, IndexOutOfRange, NotFoundError, PermissionError, GatewayError)
SAFE_LISTING_PATH = "/explore"
_CONFLICT_CODES = frozenset({"already_enrolled"})


def _json_private(payload, *, status_code: int = 200) -> JSONResponse:
    # Postgres rows carry datetime/UUID values.
    return JSONResponse(
        content=jsonable_encoder(payload), status_code=status_code, headers={"Cache-Control": "private, no-store"}
    )


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _no_content() -> Response:
    return Response(status_code=204, headers={"Cache-Control": "private, no-store"})


def _domain_error(exc: Exception) -> JSONResponse:
    if isinstance(exc, ValidationError):
        if exc.code in _CONFLICT_CODES:
            return _private_error({"error": "conflict", "detail": exc.code}, status_code=409)
        payload = {"error": "bad_request", "detail": exc.code}
        if exc.detail is not None:
            payload["context"] = exc.detail
        return _private_error(payload, status_code=400)
    if isinstance(exc, IndexOutOfRange):
        return _private_error(
            {"error": "index_out_of_range", "detail": {"index": exc.index, "length": exc.length}},
            status_code=400,
        )
    if isinstance(exc, NotFoundError):
        return _private_error(
            {"error": "not_found", "detail": str(exc), "redirect": SAFE_LISTING_PATH}, status_code=404
        )
    if isinstance(exc, PermissionError):
        return _private_error({"error": "forbidden", "detail": str(exc) or None}, status_code=403)
    if isinstance(exc, GatewayError):
        logger.warning("Gateway failure on %s: %s", exc.table or "?", exc.__class__.__name__)
        return _private_error({"error": "gateway_error", "detail": str(exc)}, status_code=502)
    raise exc


def _role_in(user: dict | None, role: str) -> bool:
    if not user:
        return False
    roles = user.get("roles") or []
    if not isinstance(roles, list):
        return False
    return role in roles


def _current_sub(user: dict | None) -> str:
    if not user:
        return ""
    sub = user.get("sub")
    return str(sub) if sub else ""


def _csrf_guard(request: Request) -> JSONResponse | None:
    """Enforce same-origin for browser write requests.

    Behavior:
        - In production or when STRICT_CSRF=true, require that either Origin
          or Referer is present AND same-origin.
        - Otherwise fall back to `_is_same_origin`, which permits requests
          without these headers (server-to-server calls, tests).
    """
    prod_env = (os.getenv("AULA_ENV", "dev") or "").lower() == "prod"
    strict = prod_env or (os.getenv("STRICT_CSRF", "false") or "").lower() == "true"
    if strict and not (request.headers.get("origin") or request.headers.get("referer")):
        return _private_error({"error": "forbidden", "detail": "csrf_violation"}, status_code=403)
    if not _is_same_origin(request):
        return _private_error({"error": "forbidden", "detail": "csrf_violation"}, status_code=403)
    return None
