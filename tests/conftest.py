"""
tests/conftest.py -- Shared test fixtures for AuthBridge tests.

This module provides:
  - store:      fresh in-memory UserStore per test (unit tests)
  - issuer:     TokenIssuer with a fixed test secret
  - api_client: TestClient wired to an isolated store via a patched lifespan

Design: API tests use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG and the Google client credentials must be set before any auth/api
import: auth.oauth reads Settings at import time to build its provider
registry.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-google-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-google-client-secret")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from auth.tokens import TokenIssuer

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789abcdef"


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """Empty in-memory UserStore, closed after the test."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, expire_seconds=3600)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, issuer: TokenIssuer, oauth_registry):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store, a fixed-secret issuer, and a mock OAuth registry
    into app.state so no real database file or provider is touched.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.token_issuer = issuer
        app.state.oauth = oauth_registry
        yield

    return test_lifespan


@pytest.fixture
def api_client(issuer: TokenIssuer) -> Generator[tuple[TestClient, UserStore, MagicMock], None, None]:
    """Yield (client, user_store, oauth_registry) for API integration tests.

    Each test gets its own named in-memory DB so cookies and rows never leak
    between tests.
    """
    user_store = UserStore(f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    oauth_registry = MagicMock()

    app.router.lifespan_context = _patch_lifespan(user_store, issuer, oauth_registry)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, oauth_registry

    user_store.close()
