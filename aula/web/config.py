"""
Configuration and startup security checks for Aula.

Why: Learner progress and quiz results must never land in an in-memory store
or travel over plaintext in production. This module provides a single guard
that enforces minimal production safety constraints without burdening local
development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

from aula.gateway import config as gateway_config

_DUMMY_KEYS = {"", "DUMMY_DO_NOT_USE", "CHANGE_ME"}


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def current_environment() -> str:
    return (os.getenv("AULA_ENV", "dev") or "dev").strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - GATEWAY_BACKEND must not be the in-memory gateway.
    - The Supabase key must be set and not a known placeholder.
    - SUPABASE_URL must use https.
    - DATABASE_URL must not explicitly disable TLS.
    """
    if not _is_prod_like(current_environment()):
        return

    backend = gateway_config.get_gateway_backend()
    if backend == "memory":
        raise SystemExit(
            "Refusing to start: GATEWAY_BACKEND=memory is not allowed in production/staging."
        )

    if backend == "supabase":
        key = gateway_config.get_supabase_key()
        if key.upper() in _DUMMY_KEYS or key.upper().startswith("CHANGE_ME"):
            raise SystemExit(
                "Refusing to start: SUPABASE_KEY is unset or a dummy placeholder in production."
            )
        url = gateway_config.get_supabase_url().lower()
        if not url.startswith("https://"):
            raise SystemExit("Refusing to start: SUPABASE_URL must use https in production.")

    dsn = gateway_config.get_database_url()
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
    if backend == "postgres" and not dsn:
        raise SystemExit("Refusing to start: GATEWAY_BACKEND=postgres requires DATABASE_URL.")
