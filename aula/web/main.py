"Aula LMS API"
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from aula.identity_access.domain import primary_role
from aula.identity_access.stores import SessionStore
from aula.web import config as _cfg


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via AULA_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("AULA_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("aula.web")
SESSION_COOKIE_NAME = "aula_session"
SESSION_STORE = SessionStore()

app = FastAPI(title="Aula", description="Learning management API", version="0.1.0")

from aula.web.routes.auth import auth_router  # noqa: E402
from aula.web.routes.learning import learning_router  # noqa: E402
from aula.web.routes.teaching import teaching_router  # noqa: E402
from aula.web.routes.users import users_router  # noqa: E402


def _session_cookie_options() -> dict:
    """Hardened cookie flags, identical in every environment."""
    return {"httponly": True, "secure": True, "samesite": "lax", "path": "/"}


def _set_session_cookie(response: Response, value: str, *, max_age: int | None = None) -> None:
    response.set_cookie(key=SESSION_COOKIE_NAME, value=value, max_age=max_age, **_session_cookie_options())


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, **_session_cookie_options())


def _is_public_path(path: str) -> bool:
    return path.startswith("/auth/") or path in ("/health", "/docs", "/openapi.json")


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    rec = SESSION_STORE.get(sid) if sid else None
    if not rec:
        headers = {"Cache-Control": "private, no-store", "Vary": "Origin"}
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=headers)

    # Expose minimal, read-only user context for downstream handlers.
    request.state.user = {
        "sub": rec.sub,
        "name": rec.name,
        "role": primary_role(rec.roles),
        "roles": list(rec.roles),
        "expires_at": rec.expires_at,
    }
    return await call_next(request)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(teaching_router)
app.include_router(learning_router)
