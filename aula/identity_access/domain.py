"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the dashboards and the web layer.
- ``primary_role`` decides which dashboard a user with several roles sees.
"""

from __future__ import annotations

ALLOWED_ROLES = frozenset({"student", "teacher", "admin"})
# Sign-up metadata is user-editable; admin is granted through the profiles table only.
SELF_ASSIGNABLE_ROLES = frozenset({"student", "teacher"})

_ROLE_PRIORITY = ("admin", "teacher", "student")


def primary_role(roles: list[str]) -> str:
    lowered = [r.lower() for r in roles if isinstance(r, str)]
    for role in _ROLE_PRIORITY:
        if role in lowered:
            return role
    return "student"


def normalize_roles(raw: object, *, allowed: frozenset[str] = ALLOWED_ROLES) -> list[str]:
    """Keep roles from ``allowed`` only; an unknown or missing role falls back to student."""
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return ["student"]
    roles = [r.strip().lower() for r in raw if isinstance(r, str) and r.strip().lower() in allowed]
    return list(dict.fromkeys(roles)) or ["student"]


__all__ = ["ALLOWED_ROLES", "SELF_ASSIGNABLE_ROLES", "primary_role", "normalize_roles"]
