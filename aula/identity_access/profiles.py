"""
Profile lookups and self-service profile updates.

Reads resolve display names and roles for the other contexts. Updates are
limited to the caller's own row and to the fields a user may edit: ``full_name``,
``bio`` and ``preferred_language``. The role is never user-editable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, Optional

from aula.errors import NotFoundError, ValidationError
from aula.gateway.ports import GatewayProtocol, select_one

logger = logging.getLogger("aula.identity_access")

TEACHER_FALLBACK_NAME = "Professor"
USER_FALLBACK_NAME = "Utilizador"

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_BIO_LENGTH = 500
SUPPORTED_LANGUAGES = frozenset({"pt", "en"})
EDITABLE_FIELDS = ("full_name", "bio", "preferred_language")


def get_profile(gateway: GatewayProtocol, user_id: str) -> Optional[Dict[str, Any]]:
    return select_one(gateway, "profiles", id=user_id)


def display_names(gateway: GatewayProtocol, user_ids: Iterable[str], *, fallback: str) -> Dict[str, str]:
    """Map every id to its profile ``full_name``; unknown or blank names use ``fallback``."""
    ids = list(dict.fromkeys(i for i in user_ids if i))
    if not ids:
        return {}
    names = {p["id"]: p.get("full_name") for p in gateway.select("profiles", in_={"id": ids})}
    return {i: (names.get(i) or fallback) for i in ids}


def _full_name(value: object) -> str:
    if not isinstance(value, str):
        raise ValidationError("invalid_full_name")
    trimmed = value.strip()
    if not (MIN_NAME_LENGTH <= len(trimmed) <= MAX_NAME_LENGTH):
        raise ValidationError("invalid_full_name")
    return trimmed


def _bio(value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > MAX_BIO_LENGTH:
        raise ValidationError("invalid_bio")
    return value.strip() or None


def _language(value: object) -> str:
    if not isinstance(value, str) or value not in SUPPORTED_LANGUAGES:
        raise ValidationError("invalid_preferred_language")
    return value


_VALIDATORS = {"full_name": _full_name, "bio": _bio, "preferred_language": _language}


@dataclass
class UpdateProfileInput:
    sub: str
    changes: Dict[str, Any] = field(default_factory=dict)


class UpdateProfileUseCase:
    def __init__(self, gateway: GatewayProtocol) -> None:
        self._gateway = gateway

    def execute(self, req: UpdateProfileInput) -> Dict[str, Any]:
        """Apply ``changes`` to the caller's profile and return the stored row.

        Behavior:
            - Only keys in EDITABLE_FIELDS are accepted; anything else raises
              ValidationError("unknown_field") before any write.
            - ``full_name`` is trimmed and must be 2..100 characters; an empty
              ``bio`` is stored as null; ``preferred_language`` is pt or en.
            - A missing profile row raises NotFoundError("profile_not_found").
        """
        unknown = sorted(set(req.changes) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError("unknown_field", detail=unknown)
        patch = {key: _VALIDATORS[key](value) for key, value in req.changes.items()}
        if not patch:
            profile = get_profile(self._gateway, req.sub)
            if profile is None:
                raise NotFoundError("profile_not_found")
            return profile
        rows = self._gateway.update("profiles", patch, eq={"id": req.sub})
        if not rows:
            raise NotFoundError("profile_not_found")
        logger.info("Profile %s updated (%s)", req.sub, ", ".join(sorted(patch)))
        return rows[0]


__all__ = [
    "TEACHER_FALLBACK_NAME",
    "USER_FALLBACK_NAME",
    "EDITABLE_FIELDS",
    "get_profile",
    "display_names",
    "UpdateProfileInput",
    "UpdateProfileUseCase",
]
