"""
cache/service.py -- Cache-aside reads and explicit region eviction.

Pattern: Cache-aside. get_or_compute() checks the store first and falls back
to the caller's compute function on a miss, then populates the entry with the
region's TTL. Writers call evict() directly as a visible side effect of the
write -- there is no decorator or annotation layer resolving invalidation.

Failure policy:
  Reads and populates degrade: a store error is logged and the value is
  computed directly, so an unavailable cache never fails a read.
  Evictions do not degrade: a store error surfaces as CacheUnavailableError,
  because acknowledging a write while stale entries may survive would break
  read-after-write for that key.

Usage:
    cache = CacheService(SQLCacheStore("sqlite:///:memory:"))
    page = cache.get_or_compute("products", key, lambda: store.page_products(...))
    cache.evict("carts", "alice")
    cache.evict_all()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional, TypeVar

from cache.regions import (
    ALL_REGIONS,
    CARTS,
    CATEGORIES,
    ORDERS,
    PRODUCT_REGIONS,
    REGION_TTLS,
    USER_DETAILS,
    USER_REGIONS,
)
from cache.store import CacheStoreError
from core.errors import CacheUnavailableError, NotFoundError

logger = logging.getLogger("storefront.cache")

T = TypeVar("T")


class UnknownCacheRegion(NotFoundError):
    def __init__(self, region: str) -> None:
        super().__init__(f"Unknown cache region: {region}")
        self.region = region


def make_key(*parts: Any) -> str:
    """Flatten a parameter tuple into one key string: (0, 50, "asc") -> "0_50_asc"."""
    return "_".join(str(p) for p in parts)


class CacheService:
    def __init__(self, store, region_ttls: Optional[dict[str, int]] = None) -> None:
        self.store = store
        self.region_ttls = dict(region_ttls or REGION_TTLS)

    def _check_region(self, region: str) -> None:
        if region not in self.region_ttls:
            raise UnknownCacheRegion(region)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_or_compute(self, region: str, key: str, compute: Callable[[], T], ttl: Optional[int] = None) -> T:
        """Return the cached value for (region, key), computing and storing it on a miss.

        compute() must return a JSON-serialisable value. None results are
        returned but not cached, so a missing row is looked up again next time.
        """
        self._check_region(region)
        try:
            cached = self.store.get(region, key)
        except CacheStoreError as exc:
            logger.warning("Cache read failed for %s[%s], reading through: %s", region, key, exc)
            return compute()
        if cached is not None:
            logger.debug("Cache hit %s[%s]", region, key)
            return cached

        value = compute()
        if value is None:
            return value
        try:
            self.store.set(region, key, value, ttl or self.region_ttls[region])
        except CacheStoreError as exc:
            logger.warning("Cache populate failed for %s[%s]: %s", region, key, exc)
        return value

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def evict(self, region: str, key: Optional[str] = None) -> None:
        """Drop one key from a region, or the whole region when key is None."""
        self._check_region(region)
        try:
            if key is None:
                removed = self.store.clear_region(region)
                logger.info("Evicted cache region %s (%d entries)", region, removed)
            else:
                self.store.delete(region, key)
                logger.debug("Evicted %s[%s]", region, key)
        except CacheStoreError as exc:
            logger.error("Cache eviction failed for %s[%s]: %s", region, key, exc)
            raise CacheUnavailableError("Cache store unavailable; eviction did not complete.") from exc

    def evict_regions(self, regions: Iterable[str]) -> None:
        for region in regions:
            self.evict(region)

    def evict_all(self) -> None:
        self.evict_regions(ALL_REGIONS)

    # Grouped helpers used by the admin surface and by write paths.

    def clear_product_caches(self) -> None:
        self.evict_regions(PRODUCT_REGIONS)

    def clear_category_caches(self) -> None:
        self.evict(CATEGORIES)

    def clear_cart_caches(self) -> None:
        self.evict(CARTS)

    def clear_order_caches(self) -> None:
        self.evict(ORDERS)

    def clear_user_caches(self) -> None:
        self.evict_regions(USER_REGIONS)

    def evict_user_details(self, username: str) -> None:
        self.evict(USER_DETAILS, username)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def purge_expired(self) -> int:
        try:
            return self.store.purge_expired()
        except CacheStoreError as exc:
            logger.warning("Cache purge failed: %s", exc)
            return 0

    def is_available(self) -> bool:
        return self.store.ping()

    def close(self) -> None:
        self.store.close()
