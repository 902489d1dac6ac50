"""
tests/test_cache_routes.py -- Admin cache eviction endpoints.

Coverage:
  - Every DELETE /api/cache/* endpoint answers 200 with a plain-text confirmation
  - Unknown region name is 404; USER is 403; anonymous is 401
  - A row written behind the service's back shows up after the matching flush
  - Backend eviction failure surfaces as 503
"""

from __future__ import annotations

import pytest

from cache.regions import ALL_REGIONS
from cache.store import CacheStoreError
from shop.models import Category, Product, special_price


@pytest.mark.parametrize(
    "path,message",
    [
        ("/api/cache/all", "All caches cleared successfully"),
        ("/api/cache/products", "Product caches cleared successfully"),
        ("/api/cache/categories", "Category caches cleared successfully"),
        ("/api/cache/carts", "Cart caches cleared successfully"),
        ("/api/cache/orders", "Order caches cleared successfully"),
        ("/api/cache/users", "User caches cleared successfully"),
    ],
)
def test_grouped_flush(api_client, path, message):
    resp = api_client.client.delete(path, headers=api_client.admin.headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.text == message


@pytest.mark.parametrize("region", ALL_REGIONS)
def test_flush_single_region(api_client, region):
    resp = api_client.client.delete(f"/api/cache/{region}", headers=api_client.admin.headers)
    assert resp.status_code == 200
    assert resp.text == f"Cache '{region}' cleared successfully"


def test_unknown_region_is_404(api_client):
    resp = api_client.client.delete("/api/cache/wishlists", headers=api_client.admin.headers)
    assert resp.status_code == 404
    assert resp.json()["path"] == "/api/cache/wishlists"


def test_user_is_403(api_client):
    assert api_client.client.delete("/api/cache/products", headers=api_client.user.headers).status_code == 403


def test_seller_is_403(api_client):
    assert api_client.client.delete("/api/cache/all", headers=api_client.seller.headers).status_code == 403


def test_anonymous_is_401(api_client):
    assert api_client.client.delete("/api/cache/all").status_code == 401


def test_flush_reveals_out_of_band_write(api_client):
    client, store = api_client.client, api_client.shop_store
    category_id = store.create_category(Category(category_name="Out Of Band"))
    api_client.cache.clear_category_caches()
    url = f"/api/public/categories/{category_id}/products"
    assert client.get(url).json()["content"] == []

    store.create_product(
        Product(
            product_name="Sneaky Insert",
            category_id=category_id,
            price=10.0,
            special_price=special_price(10.0, 0.0),
            quantity=1,
        )
    )
    assert client.get(url).json()["content"] == []  # still served from cache

    assert client.delete("/api/cache/products", headers=api_client.admin.headers).status_code == 200
    names = [p["product_name"] for p in client.get(url).json()["content"]]
    assert names == ["Sneaky Insert"]


def test_eviction_failure_is_503(api_client, monkeypatch):
    def refuse(region):
        raise CacheStoreError("connection refused")

    monkeypatch.setattr(api_client.cache.store, "clear_region", refuse)
    resp = api_client.client.delete("/api/cache/carts", headers=api_client.admin.headers)
    assert resp.status_code == 503
    assert resp.json()["error"] == "Service Unavailable"
    assert "connection refused" not in resp.json()["message"]
