"""User-scoped endpoints: the current identity, the role dashboard and the own profile."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from aula.gateway.wiring import gateway_for
from aula.identity_access.profiles import UpdateProfileInput, UpdateProfileUseCase
from aula.learning.usecases.dashboards import DashboardInput, GetDashboardUseCase

from .common import DOMAIN_ERRORS, _csrf_guard, _current_sub, _domain_error, _json_private

users_router = APIRouter(tags=["Users"])


class ProfileUpdatePayload(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=2000)
    preferred_language: Optional[str] = Field(default=None, max_length=8)


@users_router.get("/api/me")
async def get_me(request: Request):
    user = getattr(request.state, "user", None) or {}
    return _json_private(
        {
            "sub": user.get("sub"),
            "name": user.get("name"),
            "role": user.get("role"),
            "roles": user.get("roles") or [],
            "expires_at": user.get("expires_at"),
        }
    )


@users_router.patch("/api/me/profile")
async def update_profile(request: Request, payload: ProfileUpdatePayload):
    """Update the caller's own ``full_name``, ``bio`` or ``preferred_language``.

    Only the fields present in the body change. A new ``full_name`` also
    refreshes the display name held by the current session.
    """
    csrf = _csrf_guard(request)
    if csrf:
        return csrf
    sub = _current_sub(getattr(request.state, "user", None))
    try:
        row = UpdateProfileUseCase(gateway_for(sub)).execute(
            UpdateProfileInput(sub=sub, changes=payload.model_dump(exclude_unset=True))
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)

    from aula.web import main

    rec = main.SESSION_STORE.get(request.cookies.get(main.SESSION_COOKIE_NAME) or "")
    if rec is not None and row.get("full_name"):
        rec.name = row["full_name"]
    return _json_private(row)


@users_router.get("/api/dashboard")
async def get_dashboard(request: Request):
    """Return the summary for the caller's primary role (admin > teacher > student)."""
    user = getattr(request.state, "user", None)
    try:
        summary = GetDashboardUseCase(gateway_for(_current_sub(user))).execute(
            DashboardInput(sub=_current_sub(user), role=(user or {}).get("role") or "student")
        )
    except DOMAIN_ERRORS as exc:
        return _domain_error(exc)
    return _json_private(summary)
