"""
api/routes/cache.py -- Manual cache eviction for operators.

Routes (ADMIN only; named groups registered before the {region} catch-all):
  DELETE /api/cache/all          -- every region
  DELETE /api/cache/products     -- products, productsByCategory, productsByKeyword
  DELETE /api/cache/categories
  DELETE /api/cache/carts
  DELETE /api/cache/orders
  DELETE /api/cache/users        -- userDetails, sellers
  DELETE /api/cache/{region}     -- one named region; unknown names -> 404

Success bodies are plain text. A backend failure during eviction surfaces
as 503 (CacheUnavailableError) in the usual JSON error envelope.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from auth.dependencies import require_admin
from auth.models import Principal
from cache.service import CacheService

logger = logging.getLogger("storefront.api.cache")

router = APIRouter(dependencies=[Depends(require_admin)], default_response_class=PlainTextResponse)


def _cache(request: Request) -> CacheService:
    return request.app.state.cache


@router.delete("/cache/all")
def clear_all(request: Request, admin: Principal = Depends(require_admin)) -> str:
    _cache(request).evict_all()
    logger.info("All caches cleared by %s", admin.username)
    return "All caches cleared successfully"


@router.delete("/cache/products")
def clear_products(request: Request) -> str:
    _cache(request).clear_product_caches()
    return "Product caches cleared successfully"


@router.delete("/cache/categories")
def clear_categories(request: Request) -> str:
    _cache(request).clear_category_caches()
    return "Category caches cleared successfully"


@router.delete("/cache/carts")
def clear_carts(request: Request) -> str:
    _cache(request).clear_cart_caches()
    return "Cart caches cleared successfully"


@router.delete("/cache/orders")
def clear_orders(request: Request) -> str:
    _cache(request).clear_order_caches()
    return "Order caches cleared successfully"


@router.delete("/cache/users")
def clear_users(request: Request) -> str:
    _cache(request).clear_user_caches()
    return "User caches cleared successfully"


@router.delete("/cache/{region}")
def clear_region(request: Request, region: str, admin: Principal = Depends(require_admin)) -> str:
    _cache(request).evict(region)
    logger.info("Cache region %s cleared by %s", region, admin.username)
    return f"Cache '{region}' cleared successfully"
