"""
shop/orders.py -- Checkout, order listings, status updates and sales analytics.

Checkout converts the caller's cart into an order in one store transaction
(ShopStore.checkout). Payment gateway fields are recorded as supplied by the
client; no gateway is called from here.

A successful checkout changes orders, the caller's cart, and product stock,
so it evicts the orders region, the caller's cart keys and the product
regions before returning.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from auth.models import Principal
from cache.regions import CARTS, ORDERS
from cache.service import CacheService, make_key
from core.errors import BadRequestError, ForbiddenError, NotFoundError
from shop.carts import ALL_CARTS_KEY, cart_key
from shop.models import Order, Payment
from shop.paging import PageRequest, page_envelope
from shop.store import ShopStore

logger = logging.getLogger("storefront.orders")

INITIAL_ORDER_STATUS = "Order Accepted !"


def order_dict(order: Order) -> dict:
    return {
        "order_id": order.id,
        "email": order.email,
        "order_date": order.order_date,
        "total_amount": order.total_amount,
        "order_status": order.order_status,
        "address_id": order.address_id,
        "payment": asdict(order.payment) if order.payment is not None else None,
        "items": [asdict(i) for i in order.items],
    }


class OrderService:
    def __init__(self, store: ShopStore, cache: CacheService) -> None:
        self.store = store
        self.cache = cache

    def place_order(self, principal: Principal, payment_method: str, details: dict) -> dict:
        cart = self.store.get_cart_by_user(principal.user_id)
        if cart is None:
            raise NotFoundError.of("Cart", "email", principal.email)
        address_id = details["address_id"]
        address = self.store.get_address(address_id)
        if address is None:
            raise NotFoundError.of("Address", "addressId", address_id)
        if address.user_id != principal.user_id:
            raise ForbiddenError("Address does not belong to the current user")
        if not cart.items:
            raise BadRequestError("Cart is empty")

        payment = Payment(
            payment_method=payment_method,
            pg_payment_id=details.get("pg_payment_id"),
            pg_status=details.get("pg_status"),
            pg_response_message=details.get("pg_response_message"),
            pg_name=details.get("pg_name"),
        )
        try:
            order_id = self.store.checkout(cart, principal.email, address_id, payment, INITIAL_ORDER_STATUS)
        except ValueError as exc:
            raise BadRequestError(str(exc)) from exc

        self.cache.evict(ORDERS)
        self.cache.evict(CARTS, cart_key(principal.username))
        self.cache.evict(CARTS, ALL_CARTS_KEY)
        self.cache.clear_product_caches()
        logger.info("Order %d placed by %s (%.2f)", order_id, principal.username, cart.total_price)
        return order_dict(self.store.get_order(order_id))

    def user_orders(self, principal: Principal) -> list[dict]:
        def _compute() -> list[dict]:
            orders, _ = self.store.page_orders(0, 1000, "order_id", True, email=principal.email)
            return [order_dict(o) for o in orders]

        return self.cache.get_or_compute(ORDERS, make_key("user", principal.email), _compute)

    def list_orders(self, page: PageRequest, seller_id: int | None = None) -> dict:
        scope = f"seller{seller_id}" if seller_id is not None else "all"

        def _compute() -> dict:
            try:
                orders, total = self.store.page_orders(
                    page.offset, page.page_size, page.sort_by, page.descending, seller_id=seller_id
                )
            except ValueError as exc:
                raise BadRequestError(str(exc)) from exc
            return page_envelope([order_dict(o) for o in orders], page, total)

        return self.cache.get_or_compute(ORDERS, page.cache_key(scope), _compute)

    def update_status(self, order_id: int, status: str) -> dict:
        if not self.store.update_order_status(order_id, status):
            raise NotFoundError.of("Order", "orderId", order_id)
        self.cache.evict(ORDERS)
        return order_dict(self.store.get_order(order_id))

    def analytics(self) -> dict:
        order_count, revenue = self.store.order_totals()
        return {
            "product_count": self.store.count_products(),
            "total_orders": order_count,
            "total_revenue": revenue,
        }
