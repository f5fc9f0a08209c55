"""
Pytest configuration for Aula tests.

Why: Force AnyIO to use the asyncio backend and give every test a fresh
in-memory gateway so rows never leak between tests. Environment toggles that
change guard or wiring behavior are cleared per test.
"""
from __future__ import annotations

import pytest

from aula.gateway import wiring
from aula.gateway.memory import InMemoryGateway
from aula.identity_access import provider


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "AULA_ENV",
        "STRICT_CSRF",
        "AULA_TRUST_PROXY",
        "GATEWAY_BACKEND",
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "SUPABASE_ANON_KEY",
        "DATABASE_URL",
        "SESSION_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def gateway():
    """Fresh in-memory gateway wired as the process-wide default."""
    gw = InMemoryGateway()
    wiring.set_gateway(gw)
    provider.set_identity_provider(None)
    yield gw
    wiring.set_gateway(None)
    provider.set_identity_provider(None)
