"""
tests/conftest.py -- Shared test fixtures for storefront integration tests.

This module provides:
  - make_stores(): creates isolated in-memory DBs for users, shop data and cache
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient plus user/seller/admin accounts and their JWTs
  - cache_service: a CacheService on its own in-memory SQL store

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
RATE_LIMIT_ENABLED=false keeps the sign-in limit from tripping across tests.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set before any auth/core import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app, init_services
from auth.models import AppRole, User
from auth.store import UserStore
from auth.tokens import hash_password, issue_token
from cache.service import CacheService
from cache.store import SQLCacheStore
from shop.store import ShopStore

PASSWORD = "testpass123"


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_stores(db_suffix: str) -> tuple[UserStore, ShopStore, CacheService]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB names so test modules
                   don't share state (the module name is used).
    """
    user_store = UserStore(db_url=memory_url(f"test_users_{db_suffix}"))
    shop_store = ShopStore(db_url=memory_url(f"test_shop_{db_suffix}"))
    cache = CacheService(SQLCacheStore(memory_url(f"test_cache_{db_suffix}")))
    return user_store, shop_store, cache


def _patch_lifespan(user_store: UserStore, shop_store: ShopStore, cache: CacheService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state through the same
    init_services() the real lifespan uses, so routes see the same object
    graph backed by isolated in-memory DBs.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; shutdown calls .cancel() on it).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_services(app, user_store, shop_store, cache)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass
class Account:
    id: int
    username: str
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    shop_store: ShopStore
    cache: CacheService
    user: Account
    seller: Account
    admin: Account


def _create_account(store: UserStore, username: str, roles: set[str]) -> Account:
    email = f"{username}@example.com"
    uid = store.create_user(
        User(username=username, email=email, hashed_password=hash_password(PASSWORD), roles=roles)
    )
    return Account(id=uid, username=username, email=email, token=issue_token(username))


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app (real middleware, policy and
    exception handlers) with a patched lifespan so tests use isolated
    in-memory stores. Three accounts exist before the client starts:
    shopper (ROLE_USER), merchant (ROLE_SELLER + ROLE_USER), boss (ROLE_ADMIN).
    """
    user_store, shop_store, cache = make_stores(request.module.__name__.rsplit(".", 1)[-1])

    user = _create_account(user_store, "shopper", {AppRole.USER.value})
    seller = _create_account(user_store, "merchant", {AppRole.SELLER.value, AppRole.USER.value})
    admin = _create_account(user_store, "boss", {AppRole.ADMIN.value})

    app.router.lifespan_context = _patch_lifespan(user_store, shop_store, cache)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, user_store, shop_store, cache, user, seller, admin)

    cache.close()
    shop_store.close()
    user_store.close()


@pytest.fixture(autouse=True)
def _fresh_cookie_jar(request) -> Generator[None, None, None]:
    """Drop cookies set by sign-in so the next test starts anonymous.

    The auth cookie takes precedence over a Bearer header, so a leftover
    cookie would silently change who the next request runs as.
    """
    yield
    if "api_client" in request.fixturenames:
        request.getfixturevalue("api_client").client.cookies.clear()


@pytest.fixture
def cache_service(request) -> Generator[CacheService, None, None]:
    name = "".join(c if c.isalnum() else "_" for c in request.node.name)
    service = CacheService(SQLCacheStore(memory_url(f"test_cache_unit_{name}")))
    yield service
    service.close()
