"""
shop/catalog.py -- Category and product use cases with cache-aside listings.

Reads go through CacheService.get_or_compute() keyed by the listing's
parameters. Every write evicts the regions its change makes stale before
returning, so the caller never sees its own write missing from a listing:

  category create/update  -> categories
  category delete         -> categories, product regions, carts
  product create          -> product regions
  product update/delete   -> product regions, carts (cart lines track price)

Values returned (and cached) are plain JSON-ready dicts; the route layer
validates them against the response models in api/models.py.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import Principal
from cache.regions import CARTS, CATEGORIES, PRODUCTS, PRODUCTS_BY_CATEGORY, PRODUCTS_BY_KEYWORD
from cache.service import CacheService
from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from shop.models import Category, Product, special_price
from shop.paging import PageRequest, page_envelope
from shop.store import ShopStore

logger = logging.getLogger("storefront.catalog")

_PRODUCT_FIELDS = ("product_name", "description", "price", "discount", "quantity", "image", "category_id")


def category_dict(category: Category) -> dict:
    return {"category_id": category.id, "category_name": category.category_name}


def product_dict(product: Product) -> dict:
    data = asdict(product)
    data["product_id"] = data.pop("id")
    return data


class CatalogService:
    def __init__(self, store: ShopStore, cache: CacheService) -> None:
        self.store = store
        self.cache = cache

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def list_categories(self, page: PageRequest) -> dict:
        def _compute() -> dict:
            categories, total = self._paged(self.store.page_categories, page)
            return page_envelope([category_dict(c) for c in categories], page, total)

        return self.cache.get_or_compute(CATEGORIES, page.cache_key(), _compute)

    def create_category(self, name: str) -> dict:
        if self.store.get_category_by_name(name) is not None:
            raise ConflictError(f"Category with the name {name} already exists !!!")
        try:
            category_id = self.store.create_category(Category(category_name=name))
        except IntegrityError as exc:
            raise ConflictError(f"Category with the name {name} already exists !!!") from exc
        self.cache.clear_category_caches()
        logger.info("Created category %d (%s)", category_id, name)
        return category_dict(self.store.get_category(category_id))

    def update_category(self, category_id: int, name: str) -> dict:
        self._require_category(category_id)
        existing = self.store.get_category_by_name(name)
        if existing is not None and existing.id != category_id:
            raise ConflictError(f"Category with the name {name} already exists !!!")
        self.store.update_category(category_id, name)
        self.cache.clear_category_caches()
        return category_dict(self.store.get_category(category_id))

    def delete_category(self, category_id: int) -> dict:
        category = self._require_category(category_id)
        self.store.delete_category(category_id)
        self.cache.clear_category_caches()
        self.cache.clear_product_caches()
        self.cache.evict(CARTS)
        logger.info("Deleted category %d (%s)", category_id, category.category_name)
        return category_dict(category)

    def _require_category(self, category_id: int) -> Category:
        category = self.store.get_category(category_id)
        if category is None:
            raise NotFoundError.of("Category", "categoryId", category_id)
        return category

    # ------------------------------------------------------------------
    # Product listings
    # ------------------------------------------------------------------

    def list_products(
        self, page: PageRequest, keyword: Optional[str] = None, category_id: Optional[int] = None
    ) -> dict:
        if keyword:
            region = PRODUCTS_BY_KEYWORD
        elif category_id is not None:
            region = PRODUCTS_BY_CATEGORY
        else:
            region = PRODUCTS
        key = page.cache_key(keyword or "", category_id if category_id is not None else "")

        def _compute() -> dict:
            products, total = self._paged(
                self.store.page_products, page, keyword=keyword or None, category_id=category_id
            )
            return page_envelope([product_dict(p) for p in products], page, total)

        return self.cache.get_or_compute(region, key, _compute)

    def products_by_category(self, category_id: int, page: PageRequest) -> dict:
        self._require_category(category_id)
        return self.list_products(page, category_id=category_id)

    def products_by_keyword(self, keyword: str, page: PageRequest) -> dict:
        return self.list_products(page, keyword=keyword)

    def seller_products(self, seller_id: int, page: PageRequest) -> dict:
        products, total = self._paged(self.store.page_products, page, seller_id=seller_id)
        return page_envelope([product_dict(p) for p in products], page, total)

    def _paged(self, query, page: PageRequest, **filters):
        try:
            return query(page.offset, page.page_size, page.sort_by, page.descending, **filters)
        except ValueError as exc:
            raise BadRequestError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Product writes
    # ------------------------------------------------------------------

    def add_product(self, category_id: int, data: dict, seller: Principal) -> dict:
        self._require_category(category_id)
        name = data["product_name"]
        if self.store.find_product(category_id, name) is not None:
            raise ConflictError("Product already exists!!")
        price = data["price"]
        discount = data.get("discount", 0.0)
        product = Product(
            product_name=name,
            description=data.get("description", ""),
            price=price,
            discount=discount,
            special_price=special_price(price, discount),
            quantity=data.get("quantity", 0),
            image=data.get("image") or "default.png",
            category_id=category_id,
            seller_id=seller.user_id,
        )
        product_id = self.store.create_product(product)
        self.cache.clear_product_caches()
        logger.info("Product %d (%s) listed by %s", product_id, name, seller.username)
        return product_dict(self.store.get_product(product_id))

    def update_product(self, product_id: int, data: dict, principal: Principal) -> dict:
        product = self._require_owned_product(product_id, principal)
        fields = {k: v for k, v in data.items() if k in _PRODUCT_FIELDS and v is not None}
        if "category_id" in fields:
            self._require_category(fields["category_id"])
        if not fields:
            raise BadRequestError("No fields to update.")
        price = fields.get("price", product.price)
        discount = fields.get("discount", product.discount)
        fields["special_price"] = special_price(price, discount)
        self.store.update_product(product_id, **fields)
        self.cache.clear_product_caches()
        self.cache.evict(CARTS)
        return product_dict(self.store.get_product(product_id))

    def update_product_image(self, product_id: int, image: str, principal: Principal) -> dict:
        self._require_owned_product(product_id, principal)
        self.store.update_product(product_id, image=image)
        self.cache.clear_product_caches()
        return product_dict(self.store.get_product(product_id))

    def delete_product(self, product_id: int, principal: Principal) -> dict:
        product = self._require_owned_product(product_id, principal)
        self.store.delete_product(product_id)
        self.cache.clear_product_caches()
        self.cache.evict(CARTS)
        logger.info("Product %d deleted by %s", product_id, principal.username)
        return product_dict(product)

    def _require_owned_product(self, product_id: int, principal: Principal) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFoundError.of("Product", "productId", product_id)
        if not principal.is_admin and product.seller_id != principal.user_id:
            raise ForbiddenError("You can only modify your own products")
        return product
