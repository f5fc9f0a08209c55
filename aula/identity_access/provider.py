"""
Access-token verification against the managed backend's auth service.

Why:
    The backend issues the tokens; this service only exchanges a valid access
    token for a server-side session. The port keeps the web layer independent
    of the Supabase client so tests can inject a fake provider.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Optional, Protocol

import httpx

from aula.errors import GatewayError
from aula.gateway.ports import GatewayProtocol
from aula.identity_access.domain import SELF_ASSIGNABLE_ROLES, normalize_roles
from aula.identity_access.profiles import get_profile

logger = logging.getLogger("aula.identity_access")


@dataclass
class Identity:
    sub: str
    email: Optional[str] = None
    name: str = ""
    roles: list[str] = field(default_factory=lambda: ["student"])


class IdentityProviderProtocol(Protocol):
    def verify(self, access_token: str) -> Identity:
        """Return the identity behind ``access_token`` or raise PermissionError."""
        ...


class SupabaseIdentityProvider:
    """Verify tokens with ``client.auth.get_user`` (duck-typed supabase client)."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def verify(self, access_token: str) -> Identity:
        if not access_token:
            raise PermissionError("invalid_token")
        try:
            response = self._client.auth.get_user(access_token)
        except httpx.HTTPError as exc:
            logger.warning("Auth service unreachable: %s", exc.__class__.__name__)
            raise GatewayError("auth service unreachable") from exc
        except Exception as exc:
            logger.info("Access token rejected: %s", exc.__class__.__name__)
            raise PermissionError("invalid_token") from exc
        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise PermissionError("invalid_token")
        metadata = getattr(user, "user_metadata", None) or {}
        return Identity(
            sub=str(user.id),
            email=getattr(user, "email", None),
            name=str(metadata.get("full_name") or ""),
            roles=normalize_roles(metadata.get("role"), allowed=SELF_ASSIGNABLE_ROLES),
        )


def resolve_identity(identity: Identity, gateway: GatewayProtocol) -> Identity:
    """Prefer the ``profiles`` row for name and role; token metadata is the fallback."""
    profile = get_profile(gateway, identity.sub)
    if profile is None:
        return identity
    return Identity(
        sub=identity.sub,
        email=identity.email,
        name=profile.get("full_name") or identity.name,
        roles=normalize_roles(profile.get("role")) if profile.get("role") else identity.roles,
    )


_PROVIDER: IdentityProviderProtocol | None = None


def _build_default_provider() -> IdentityProviderProtocol | None:
    from aula.gateway.config import get_supabase_key, get_supabase_url

    url = get_supabase_url()
    key = get_supabase_key()
    if not url or not key:
        return None
    try:
        from supabase import create_client

        return SupabaseIdentityProvider(create_client(url, key))
    except Exception as exc:  # pragma: no cover - misconfigured URL/key
        logger.warning("Supabase auth client unavailable: %s", exc.__class__.__name__)
        return None


def get_identity_provider() -> IdentityProviderProtocol | None:
    global _PROVIDER
    if _PROVIDER is None:
        _PROVIDER = _build_default_provider()
    return _PROVIDER


def set_identity_provider(provider: IdentityProviderProtocol | None) -> None:
    global _PROVIDER
    _PROVIDER = provider


__all__ = [
    "Identity",
    "IdentityProviderProtocol",
    "SupabaseIdentityProvider",
    "resolve_identity",
    "get_identity_provider",
    "set_identity_provider",
]
