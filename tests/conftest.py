"""
tests/conftest.py -- Shared test fixtures for SecretGate.

This module provides:
  - store / broker / guard: the auth core over a private in-memory SQLite DB
  - _make_test_store(): isolated named shared-memory DB for TestClient tests
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - web_client: TestClient with follow_redirects=False for browser routes
  - api_client: TestClient for the JSON API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
TestClient because it runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment variables must be set before any auth/core import: settings are
read once into an lru_cache singleton.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.broker import AuthBroker
from auth.guard import AccessGuard
from auth.store import UserStore

# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def broker(store: UserStore) -> AuthBroker:
    return AuthBroker.from_store(store)


@pytest.fixture
def guard(broker: AuthBroker) -> AccessGuard:
    return AccessGuard(broker.serializer)


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _make_test_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A fresh name per call keeps every test's users separate.
    """
    return UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, oauth_registry):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        broker = AuthBroker.from_store(user_store)
        app.state.user_store = user_store
        app.state.broker = broker
        app.state.guard = AccessGuard(broker.serializer)
        app.state.oauth = oauth_registry
        yield

    return test_lifespan


@pytest.fixture
def oauth_registry() -> MagicMock:
    """Stand-in for the Authlib registry; tests configure create_client()."""
    return MagicMock()


@pytest.fixture
def app_store() -> Generator[UserStore, None, None]:
    s = _make_test_store()
    yield s
    s.close()


@pytest.fixture
def web_client(app_store: UserStore, oauth_registry: MagicMock) -> Generator[TestClient, None, None]:
    """TestClient for browser routes.

    follow_redirects=False is essential: tests assert on redirect locations,
    which are invisible once the client follows them.
    """
    app.router.lifespan_context = _patch_lifespan(app_store, oauth_registry)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client


@pytest.fixture
def api_client(app_store: UserStore, oauth_registry: MagicMock) -> Generator[TestClient, None, None]:
    app.router.lifespan_context = _patch_lifespan(app_store, oauth_registry)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
