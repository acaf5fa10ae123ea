"""
tests/conftest.py -- Shared test fixtures for TokenGate.

This module provides:
  - FakeClock: a settable clock injected into TokenService for expiry tests
  - hasher / tokens / store / service: isolated core components per test
  - _patch_lifespan(): wires test components into app.state, bypassing real startup
  - api_client: TestClient plus an admin bearer token for route tests

Design: stores use a SQLite file under tmp_path rather than ':memory:'.
TestClient runs sync route handlers in a thread pool and the concurrency
tests spawn their own threads; a file database in WAL mode gives every
connection the same schema and real reader/writer isolation.

bcrypt runs at cost 4 in tests. The cost factor only changes speed, not
behaviour.

DEBUG and LOGIN_RATE_LIMIT must be set before any api/ or core/ import so
get_settings() auto-generates SECRET_KEY and the login limiter does not trip
on the many logins a test module performs.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set env before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_components
from auth.passwords import PasswordHasher
from auth.service import AccountService
from auth.store import AccountStore
from auth.tokens import TokenService

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock; advance() moves time without sleeping."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Core component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def tokens(clock: FakeClock) -> TokenService:
    return TokenService(secret_key=TEST_SECRET, ttl_seconds=3600, clock=clock)


@pytest.fixture
def store(tmp_path) -> Generator[AccountStore, None, None]:
    s = AccountStore(f"sqlite:///{tmp_path / 'accounts.db'}")
    yield s
    s.close()


@pytest.fixture
def service(store: AccountStore, hasher: PasswordHasher, tokens: TokenService) -> AccountService:
    return AccountService(store, hasher, tokens)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, hasher: PasswordHasher, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test components into app.state so TestClient routes
    see an isolated database and a known signing key.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        install_components(app, store, hasher, tokens)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, str], None, None]:
    """Yield (client, admin_token) for route integration tests.

    One TestClient per test module for speed. An admin account
    ("rootadmin" / "adminpass1") exists before the client starts; its token
    is obtained through the real POST /login route.
    """
    db_path = tmp_path_factory.mktemp("api") / "accounts.db"
    store = AccountStore(f"sqlite:///{db_path}")
    hasher = PasswordHasher(rounds=TEST_ROUNDS)
    tokens = TokenService(secret_key=TEST_SECRET, ttl_seconds=3600)
    AccountService(store, hasher, tokens).register("rootadmin", "adminpass1", role="admin")

    app.router.lifespan_context = _patch_lifespan(store, hasher, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        resp = client.post("/login", json={"username": "rootadmin", "password": "adminpass1"})
        assert resp.status_code == 200, resp.text
        yield client, resp.json()["token"]

    store.close()
