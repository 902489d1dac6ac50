"""
cache/regions.py -- Named cache regions and their fixed time-to-live.

TTLs are configuration, not computed. A region name is the first half of
every cache key; the admin flush endpoints and the grouped clear_* helpers on
CacheService address regions by these names.
"""

PRODUCTS = "products"
PRODUCTS_BY_CATEGORY = "productsByCategory"
PRODUCTS_BY_KEYWORD = "productsByKeyword"
CATEGORIES = "categories"
CARTS = "carts"
ORDERS = "orders"
USER_DETAILS = "userDetails"
SELLERS = "sellers"

REGION_TTLS: dict[str, int] = {
    PRODUCTS: 2 * 60 * 60,
    PRODUCTS_BY_CATEGORY: 2 * 60 * 60,
    PRODUCTS_BY_KEYWORD: 2 * 60 * 60,
    CATEGORIES: 6 * 60 * 60,
    CARTS: 30 * 60,
    ORDERS: 60 * 60,
    USER_DETAILS: 15 * 60,
    SELLERS: 30 * 60,
}

ALL_REGIONS: tuple[str, ...] = tuple(REGION_TTLS)

PRODUCT_REGIONS = (PRODUCTS, PRODUCTS_BY_CATEGORY, PRODUCTS_BY_KEYWORD)
USER_REGIONS = (USER_DETAILS, SELLERS)
