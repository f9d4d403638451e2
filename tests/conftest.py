"""
tests/conftest.py -- Shared test fixtures for Registrar tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for accounts + records
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - account_store / records_store: fresh stores for unit tests
  - app_harness: one TestClient per test module, seeded with the sample data
  - client: the harness client with its cookie jar emptied before each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any auth/core import: get_settings() is
cached on first call and auth/tokens.py reads it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("SEED_SAMPLE_DATA", "false")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.store import AccountStore
from auth.tokens import create_access_token
from records.seed import seed_sample_data
from records.store import RecordsStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[AccountStore, RecordsStore]:
    """Create isolated named shared-memory SQLite stores.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    auth_url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    records_url = f"sqlite:///file:test_records_{db_suffix}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=auth_url), RecordsStore(db_url=records_url)


def _patch_lifespan(account_store: AccountStore, records_store: RecordsStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the default SQLite files.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = account_store
        app.state.records_store = records_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Unit-test fixtures -- a fresh pair of stores per test
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[AccountStore, RecordsStore], None, None]:
    account_store, records_store = _make_test_stores(uuid.uuid4().hex)
    yield account_store, records_store
    account_store.close()
    records_store.close()


@pytest.fixture
def account_store(stores) -> AccountStore:
    return stores[0]


@pytest.fixture
def records_store(stores) -> RecordsStore:
    return stores[1]


# ---------------------------------------------------------------------------
# Integration fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class AppHarness:
    client: TestClient
    accounts: AccountStore
    records: RecordsStore

    def token_for(self, username: str) -> str:
        account = self.accounts.find_by_username(username)
        return create_access_token(account.id, account.username, account.roles, expire_seconds=3600)

    def headers_for(self, username: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token_for(username)}"}


@pytest.fixture(scope="module")
def app_harness(request) -> Generator[AppHarness, None, None]:
    """Yield an AppHarness backed by module-private stores.

    The stores are seeded with the sample data, so the admin, teacher1 and
    student1 accounts exist (passwords admin123, teacher123, student123).

    follow_redirects=False is essential for web route tests: we assert on
    redirect *locations* (e.g. 302 to /login), which are invisible once the
    client follows the redirect and returns the final 200 response.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    account_store, records_store = _make_test_stores(suffix)
    seed_sample_data(account_store, records_store)

    app.router.lifespan_context = _patch_lifespan(account_store, records_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield AppHarness(client, account_store, records_store)

    account_store.close()
    records_store.close()


@pytest.fixture
def client(app_harness: AppHarness) -> TestClient:
    """The module's TestClient with an empty cookie jar.

    A login earlier in the module would otherwise leave an access_token
    cookie behind, and the cookie takes precedence over a Bearer header.
    """
    app_harness.client.cookies.clear()
    return app_harness.client
