"""
Process-wide gateway wiring.

Why:
    Routes and use cases need one shared gateway instance, chosen from the
    environment at first use. Startup may happen before Supabase is reachable,
    so construction is lazy and degrades to the in-memory gateway with a
    warning instead of failing the import.

Request handlers use ``gateway_for(sub)`` so backends with row-level policies
(Postgres ``acting_as``) run every query as the signed-in user.

Tests call ``set_gateway`` to inject an isolated instance.
"""
from __future__ import annotations

import logging
from typing import Optional

from . import config
from .memory import InMemoryGateway
from .ports import GatewayProtocol

logger = logging.getLogger("aula.gateway")

_GATEWAY: Optional[GatewayProtocol] = None


def _build_default_gateway() -> GatewayProtocol:
    """Prefer the configured remote gateway; fall back to in-memory if unavailable."""
    backend = config.get_gateway_backend()
    if backend == "supabase":
        url = config.get_supabase_url()
        key = config.get_supabase_key()
        if url and key:
            try:
                from supabase import create_client

                from .supabase_gateway import SupabaseGateway

                gateway = SupabaseGateway(create_client(url, key))
                logger.info("Gateway wired: Supabase")
                return gateway
            except Exception as exc:
                logger.warning("Supabase gateway unavailable (%s: %s); using in-memory fallback", exc.__class__.__name__, exc)
        else:
            logger.warning("GATEWAY_BACKEND=supabase but SUPABASE_URL/SUPABASE_KEY unset; using in-memory fallback")
    elif backend == "postgres":
        dsn = config.get_database_url()
        try:
            from .postgres import PostgresGateway

            gateway = PostgresGateway(dsn)
            logger.info("Gateway wired: Postgres")
            return gateway
        except Exception as exc:
            logger.warning("Postgres gateway unavailable (%s); using in-memory fallback", exc)
    return InMemoryGateway()


def get_gateway() -> GatewayProtocol:
    global _GATEWAY
    if _GATEWAY is None:
        _GATEWAY = _build_default_gateway()
    return _GATEWAY


def gateway_for(sub: Optional[str]) -> GatewayProtocol:
    """Return the shared gateway scoped to ``sub`` when the backend supports it."""
    gateway = get_gateway()
    acting_as = getattr(gateway, "acting_as", None)
    if sub and callable(acting_as):
        return acting_as(sub)
    return gateway


def set_gateway(gateway: Optional[GatewayProtocol]) -> None:
    """Allow tests and startup code to swap the gateway (None resets to lazy default)."""
    global _GATEWAY
    _GATEWAY = gateway


__all__ = ["gateway_for", "get_gateway", "set_gateway"]
