"""
tests/conftest.py -- Shared test fixtures for the auth starter integration tests.

This module provides:
  - make_engine(): an isolated named shared-memory SQLite engine with schema
  - _patch_lifespan(): wires a test engine into app.state, bypassing real startup
  - client: TestClient for API tests (one fresh database per test)
  - web_client: TestClient with follow_redirects=False for web route tests
  - sign_up: fixture returning a helper that registers through the real provider route
  - session_cookie: fixture returning a helper that reads the client's session cookie

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any core/auth import so get_settings() auto-generates
SECRET_KEY instead of raising. THROTTLE_ENABLED=false keeps the global slowapi
throttle out of the way; the auth provider's own limiter is tested directly.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any core/auth import; settings are cached on first use.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("THROTTLE_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from asgi import app
from auth.provider import AuthProvider
from auth.rate_limit import AuthRateLimiter
from core.config import get_settings
from core.database import create_store_engine, init_schema
from users.store import UserStore

PASSWORD = "correct-horse-battery"


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def make_engine() -> Engine:
    """Create an isolated named shared-memory SQLite engine with the schema applied.

    The random name keeps tests from seeing each other's rows. The engine's
    pooled connection keeps the in-memory database alive until dispose().
    """
    engine = create_store_engine(f"sqlite:///file:test_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    init_schema(engine)
    return engine


def _patch_lifespan(engine: Engine, auth_rate_limit_max: int = 1000):
    """Return an async context manager that replaces the real lifespan.

    Builds the user store and auth provider on the test engine. The provider's
    rate limiter gets a generous ceiling unless a test asks for a tight one.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = UserStore(engine)
        app.state.auth = AuthProvider(
            engine,
            rate_limiter=AuthRateLimiter(engine, window_seconds=900, max_requests=auth_rate_limit_max),
        )
        yield

    return test_lifespan


def _sign_up(client: TestClient, email: str = "ada@example.com", name: str = "Ada Lovelace", password: str = PASSWORD):
    """Register through POST /api/auth/sign-up/email. The client keeps the session cookie."""
    resp = client.post("/api/auth/sign-up/email", json={"name": name, "email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def client(engine: Engine) -> Generator[TestClient, None, None]:
    """TestClient on the real app with a patched lifespan and a fresh database."""
    app.router.lifespan_context = _patch_lifespan(engine)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def web_client(engine: Engine) -> Generator[TestClient, None, None]:
    """TestClient for web routes.

    follow_redirects=False is essential: we assert on redirect *locations*
    (e.g. 302 to /login), which are invisible once the client follows them.
    """
    app.router.lifespan_context = _patch_lifespan(engine)
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def sign_up():
    return _sign_up


@pytest.fixture
def session_cookie():
    """Return a helper that reads the signed session cookie from a client's jar."""
    name = get_settings().session_cookie_name

    def _read(client: TestClient) -> str | None:
        return client.cookies.get(name)

    return _read


@pytest.fixture
def limited_client(engine: Engine) -> Generator[TestClient, None, None]:
    """TestClient whose auth provider allows two attempts per client and path per window."""
    app.router.lifespan_context = _patch_lifespan(engine, auth_rate_limit_max=2)
    with TestClient(app, follow_redirects=False) as c:
        yield c
