"""
Centralized gateway configuration.

Intent:
    Provide a single source of truth for which Persistence Gateway the service
    talks to and the credentials it needs, so the web layer, the startup guard
    and the tests read the same environment variables.

Behavior:
    - GATEWAY_BACKEND selects ``memory`` (default), ``supabase`` or ``postgres``.
    - SUPABASE_URL / SUPABASE_KEY configure the Supabase client.
    - DATABASE_URL configures direct Postgres access.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os


GATEWAY_BACKENDS = frozenset({"memory", "supabase", "postgres"})
SESSION_TTL_DEFAULT = 3600


def get_gateway_backend() -> str:
    """Return the configured gateway backend; unknown values fall back to ``memory``."""
    value = (os.getenv("GATEWAY_BACKEND") or "memory").strip().lower()
    return value if value in GATEWAY_BACKENDS else "memory"


def get_supabase_url() -> str:
    return (os.getenv("SUPABASE_URL") or "").strip()


def get_supabase_key() -> str:
    """Return the Supabase API key (anon key for RLS-scoped access)."""
    return (os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY") or "").strip()


def get_database_url() -> str:
    return (os.getenv("DATABASE_URL") or "").strip()


def _parse_int_env(name: str, default: int, *, contract_max: int | None = None) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    if isinstance(contract_max, int) and contract_max > 0:
        value = min(value, contract_max)
    return value


def get_session_ttl_seconds() -> int:
    """Session lifetime (default 1 hour, clamped to 24 hours)."""
    return _parse_int_env("SESSION_TTL_SECONDS", SESSION_TTL_DEFAULT, contract_max=24 * 3600)


__all__ = [
    "GATEWAY_BACKENDS",
    "get_gateway_backend",
    "get_supabase_url",
    "get_supabase_key",
    "get_database_url",
    "get_session_ttl_seconds",
]
