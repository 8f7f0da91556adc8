"""
tests/conftest.py -- Shared test fixtures for TaskFlow tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + tasks
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient against the real app with a fresh limiter per test
  - user_store / task_store: function-scoped stores for unit tests
  - register_user(): registers through the API, leaving cookies on the client

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any auth/core import so get_settings() can
auto-generate the JWT secrets in dev mode instead of raising ValueError.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import UserStore
from core.ratelimit import MemoryRateLimiter
from tasks.store import TaskStore

_db_counter = itertools.count()

STRONG_PASSWORD = "Abcd1234"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so parallel test
                   modules don't share state.
    """
    url = f"sqlite:///file:test_taskflow_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), TaskStore(db_url=url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.rate_limiter = MemoryRateLimiter()
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def _module_client() -> Generator[TestClient, None, None]:
    user_store, task_store = _make_test_stores(f"api_{next(_db_counter)}")
    app.router.lifespan_context = _patch_lifespan(user_store, task_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    task_store.close()
    user_store.close()


@pytest.fixture
def api_client(_module_client: TestClient) -> TestClient:
    """TestClient with empty cookies and a fresh rate limiter for each test.

    The client and its stores live for the whole module; per-test isolation
    comes from unique emails and from resetting limiter state here.
    """
    _module_client.cookies.clear()
    app.state.rate_limiter = MemoryRateLimiter()
    return _module_client


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore(db_url="sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def task_store() -> Generator[TaskStore, None, None]:
    store = TaskStore(db_url="sqlite:///:memory:")
    yield store
    store.close()


_email_counter = itertools.count()


@pytest.fixture
def unique_email() -> str:
    return f"user{next(_email_counter)}@example.com"


def register_user(client: TestClient, email: str, password: str = STRONG_PASSWORD, name: str = "Test User") -> dict:
    """Register through the API and return the response JSON's data block.

    Leaves the session cookies in client.cookies.
    """
    resp = client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": name})
    assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
    return resp.json()["data"]
