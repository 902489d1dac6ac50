"""
tests/test_auth_filter.py -- Request authentication filter and authorization policy over HTTP.

These tests exercise the full middleware stack: token extraction -> validation
-> identity lookup (userDetails cache) -> policy decision -> error envelope.

Coverage:
  - No token: public paths 200, protected paths 401 with the JSON envelope
  - USER token on an admin path: 403, no data returned
  - Cookie takes precedence over the Authorization header
  - Expired, foreign-signed and garbage tokens degrade to anonymous (401, never 5xx)
  - Unknown subject and a failing identity lookup degrade to anonymous
"""

from __future__ import annotations

from datetime import timedelta

from auth.tokens import issue_token
from shop.models import Category, Product, special_price

COOKIE = "access_token"


def _seed_product(ctx, name: str = "Filter Test Phone") -> int:
    category = ctx.shop_store.get_category_by_name("Filter Tests")
    cid = category.id if category else ctx.shop_store.create_category(Category(category_name="Filter Tests"))
    existing = ctx.shop_store.find_product(cid, name)
    if existing:
        return existing.id
    return ctx.shop_store.create_product(
        Product(
            product_name=name,
            category_id=cid,
            price=200.0,
            discount=10.0,
            special_price=special_price(200.0, 10.0),
            quantity=5,
        )
    )


class TestAnonymous:
    def test_public_products_without_token_returns_data(self, api_client) -> None:
        _seed_product(api_client)
        api_client.cache.clear_product_caches()
        resp = api_client.client.get("/api/public/products")
        assert resp.status_code == 200
        names = [p["product_name"] for p in resp.json()["content"]]
        assert "Filter Test Phone" in names

    def test_protected_path_without_token_is_401_envelope(self, api_client) -> None:
        resp = api_client.client.get("/api/carts/users/cart")
        assert resp.status_code == 401
        body = resp.json()
        assert body["status"] == 401
        assert body["error"] == "Unauthorized"
        assert body["path"] == "/api/carts/users/cart"
        assert body["message"]

    def test_admin_path_without_token_is_401(self, api_client) -> None:
        resp = api_client.client.get("/api/admin/users")
        assert resp.status_code == 401

    def test_health_is_public(self, api_client) -> None:
        assert api_client.client.get("/api/health").status_code == 200

    def test_preflight_is_not_blocked(self, api_client) -> None:
        resp = api_client.client.options(
            "/api/admin/users",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert resp.headers["access-control-allow-credentials"] == "true"


class TestRoles:
    def test_user_on_admin_path_is_403_without_data(self, api_client) -> None:
        resp = api_client.client.get("/api/admin/users", headers=api_client.user.headers)
        assert resp.status_code == 403
        body = resp.json()
        assert body["error"] == "Forbidden"
        assert body["path"] == "/api/admin/users"
        assert "content" not in body

    def test_admin_on_admin_path_is_200(self, api_client) -> None:
        resp = api_client.client.get("/api/admin/users", headers=api_client.admin.headers)
        assert resp.status_code == 200
        usernames = {u["username"] for u in resp.json()["content"]}
        assert {"shopper", "merchant", "boss"} <= usernames

    def test_user_on_seller_path_is_403(self, api_client) -> None:
        resp = api_client.client.get("/api/seller/products", headers=api_client.user.headers)
        assert resp.status_code == 403

    def test_seller_on_seller_path_is_200(self, api_client) -> None:
        resp = api_client.client.get("/api/seller/products", headers=api_client.seller.headers)
        assert resp.status_code == 200

    def test_user_on_cache_admin_is_403(self, api_client) -> None:
        resp = api_client.client.delete("/api/cache/all", headers=api_client.user.headers)
        assert resp.status_code == 403


class TestTokenSources:
    def test_bearer_header_authenticates(self, api_client) -> None:
        resp = api_client.client.get("/api/auth/user", headers=api_client.user.headers)
        assert resp.status_code == 200
        assert resp.json()["username"] == "shopper"

    def test_cookie_wins_over_header(self, api_client) -> None:
        client = api_client.client
        client.cookies.set(COOKIE, api_client.user.token)
        resp = client.get("/api/auth/user", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 200
        assert resp.json()["username"] == "shopper"

    def test_cookie_wins_even_when_header_is_a_different_valid_user(self, api_client) -> None:
        client = api_client.client
        client.cookies.set(COOKIE, api_client.user.token)
        resp = client.get("/api/auth/user", headers=api_client.admin.headers)
        assert resp.json()["username"] == "shopper"

    def test_invalid_cookie_is_not_rescued_by_header(self, api_client) -> None:
        client = api_client.client
        client.cookies.set(COOKIE, "garbage")
        resp = client.get("/api/auth/user", headers=api_client.user.headers)
        assert resp.status_code == 401

    def test_non_bearer_authorization_header_is_ignored(self, api_client) -> None:
        resp = api_client.client.get(
            "/api/auth/user", headers={"Authorization": f"Token {api_client.user.token}"}
        )
        assert resp.status_code == 401


class TestDegradesToAnonymous:
    def test_expired_token(self, api_client) -> None:
        token = issue_token("shopper", expires_in=timedelta(seconds=-5))
        resp = api_client.client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_expired_token_still_reads_public_paths(self, api_client) -> None:
        token = issue_token("shopper", expires_in=timedelta(seconds=-5))
        resp = api_client.client.get("/api/public/categories", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200

    def test_garbage_token(self, api_client) -> None:
        resp = api_client.client.get("/api/auth/user", headers={"Authorization": "Bearer a.b.c"})
        assert resp.status_code == 401

    def test_unknown_subject(self, api_client) -> None:
        token = issue_token("nobody-by-this-name")
        resp = api_client.client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_identity_lookup_failure_is_contained(self, api_client, monkeypatch) -> None:
        def boom(username):
            raise RuntimeError("user store offline")

        monkeypatch.setattr(api_client.user_store, "get_by_username", boom)
        token = issue_token("not-cached-yet")
        headers = {"Authorization": f"Bearer {token}"}

        assert api_client.client.get("/api/auth/user", headers=headers).status_code == 401
        assert api_client.client.get("/api/public/categories", headers=headers).status_code == 200
