"""
tests/conftest.py -- Shared test fixtures for Gatehouse.

This module provides:
  - hasher / credentials / store: cheap unit-test building blocks
    (bcrypt cost 4, in-memory SQLite)
  - StubOracle: a breach oracle with a scripted answer
  - api_client: TestClient over the real FastAPI app with a patched lifespan
    and one pre-registered customer

Environment: DEBUG, HASH_COST, ORACLE_ENABLED, and ALLOWED_HOSTS must be set
before any api/auth/core import. Settings is an lru_cache singleton and
api/main.py reads it at import time (TrustedHostMiddleware host list).

Named shared-memory SQLite URIs (not plain :memory:) are used for the API
store because TestClient runs sync handlers and the access middleware's
credential lookup in a thread pool. Plain :memory: DBs are per-connection and
would present a blank schema to each worker thread.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("HASH_COST", "4")
os.environ.setdefault("ORACLE_ENABLED", "false")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.components import Components, build_components
from auth.errors import OracleUnavailable
from auth.passwords import CredentialService, PasswordHasher
from auth.store import CredentialStore
from core.config import get_settings

CUSTOMER_EMAIL = "customer@example.com"
CUSTOMER_PASSWORD = "correct-horse-9"


# ---------------------------------------------------------------------------
# Collaborator stubs
# ---------------------------------------------------------------------------


class StubOracle:
    """Breach oracle with a fixed answer, or one that is always unavailable."""

    def __init__(self, compromised: bool = False, unavailable: bool = False) -> None:
        self.compromised = compromised
        self.unavailable = unavailable
        self.calls: list[str] = []

    def check_compromised(self, plaintext: str) -> bool:
        self.calls.append(plaintext)
        if self.unavailable:
            raise OracleUnavailable("Pwned Passwords request failed: read timed out")
        return self.compromised


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(cost=4, concurrency_cap=2)


@pytest.fixture
def credentials(hasher: PasswordHasher) -> CredentialService:
    return CredentialService(hasher)


@pytest.fixture
def stub_oracle() -> StubOracle:
    """An oracle answering "not compromised". Flip .compromised / .unavailable per test."""
    return StubOracle()


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(components: Components):
    """Return a lifespan that wires pre-built test components into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.components = components
        app.state.access_engine = components.access_engine
        app.state.credential_store = components.credential_store
        app.state.credential_service = components.credential_service
        app.state.registration_service = components.registration_service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request: pytest.FixtureRequest) -> Generator[tuple[TestClient, Components], None, None]:
    """Yield (client, components) for API integration tests.

    One customer (CUSTOMER_EMAIL / CUSTOMER_PASSWORD) is registered before the
    client starts. Rate limiting is disabled so tests can call /register and
    /login freely; the rate-limit test re-enables it explicitly.

    Each test module gets its own named in-memory DB.
    """
    suffix = request.module.__name__.replace(".", "_")
    store = CredentialStore(f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")
    components = build_components(get_settings(), store=store)
    components.registration_service.register(CUSTOMER_EMAIL, CUSTOMER_PASSWORD)

    app.router.lifespan_context = _patch_lifespan(components)
    limiter.enabled = False

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, components

    limiter.enabled = True
    store.close()
