"""
shop/carts.py -- Shopping cart use cases.

Each user owns at most one cart, created on the first add. Cart reads are
cached per user in the carts region under cart_key(username) and the admin
listing under ALL_CARTS_KEY. The two key shapes cannot overlap whatever the
username is. Every cart write evicts both keys before returning.

Stock is checked when a line is added or grown, but only reserved at checkout
(see shop/orders.py), so two carts may hold the last unit of a product.
"""

from __future__ import annotations

import logging

from auth.models import Principal
from cache.regions import CARTS
from cache.service import CacheService, make_key
from core.errors import BadRequestError, ForbiddenError, NotFoundError
from shop.models import Cart, CartItem, Product
from shop.store import ShopStore

logger = logging.getLogger("storefront.carts")

ALL_CARTS_KEY = "*all"


def cart_key(username: str) -> str:
    return make_key("user", username)


def cart_dict(cart: Cart) -> dict:
    return {
        "cart_id": cart.id,
        "user_id": cart.user_id,
        "total_price": cart.total_price,
        "items": [
            {
                "product_id": i.product_id,
                "product_name": i.product_name,
                "quantity": i.quantity,
                "discount": i.discount,
                "product_price": i.product_price,
            }
            for i in cart.items
        ],
    }


class CartService:
    def __init__(self, store: ShopStore, cache: CacheService) -> None:
        self.store = store
        self.cache = cache

    def _evict_for(self, username: str) -> None:
        self.cache.evict(CARTS, cart_key(username))
        self.cache.evict(CARTS, ALL_CARTS_KEY)

    def _require_product(self, product_id: int) -> Product:
        product = self.store.get_product(product_id)
        if product is None:
            raise NotFoundError.of("Product", "productId", product_id)
        return product

    @staticmethod
    def _check_stock(product: Product, quantity: int) -> None:
        if product.quantity == 0:
            raise BadRequestError(f"{product.product_name} is not available")
        if product.quantity < quantity:
            raise BadRequestError(
                f"Please, make an order of the {product.product_name} "
                f"less than or equal to the quantity {product.quantity}."
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_cart(self, principal: Principal) -> dict:
        def _compute() -> dict:
            cart = self.store.get_cart_by_user(principal.user_id)
            if cart is None:
                raise NotFoundError.of("Cart", "email", principal.email)
            return cart_dict(cart)

        return self.cache.get_or_compute(CARTS, cart_key(principal.username), _compute)

    def list_carts(self) -> list[dict]:
        return self.cache.get_or_compute(
            CARTS, ALL_CARTS_KEY, lambda: [cart_dict(c) for c in self.store.list_carts()]
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_product(self, principal: Principal, product_id: int, quantity: int) -> dict:
        if quantity < 1:
            raise BadRequestError("Quantity must be at least 1")
        product = self._require_product(product_id)
        cart = self.store.get_or_create_cart(principal.user_id)
        if any(i.product_id == product_id for i in cart.items):
            raise BadRequestError(f"Product {product.product_name} already exists in the cart")
        self._check_stock(product, quantity)
        self.store.add_cart_item(
            CartItem(
                cart_id=cart.id,
                product_id=product_id,
                quantity=quantity,
                discount=product.discount,
                product_price=product.special_price,
            )
        )
        self._evict_for(principal.username)
        logger.info("%s added %d x product %d to cart %d", principal.username, quantity, product_id, cart.id)
        return cart_dict(self.store.get_cart(cart.id))

    def update_quantity(self, principal: Principal, product_id: int, operation: str) -> dict:
        op = operation.lower()
        if op not in ("add", "delete"):
            raise BadRequestError("operation must be 'add' or 'delete'")
        delta = -1 if op == "delete" else 1

        cart = self.store.get_cart_by_user(principal.user_id)
        if cart is None:
            raise NotFoundError.of("Cart", "email", principal.email)
        product = self._require_product(product_id)
        line = next((i for i in cart.items if i.product_id == product_id), None)
        if line is None:
            raise BadRequestError(f"Product {product.product_name} not available in the cart!!!")

        new_quantity = line.quantity + delta
        if new_quantity < 0:
            raise BadRequestError("The resulting quantity cannot be negative.")
        if delta > 0:
            self._check_stock(product, new_quantity)
        self.store.set_cart_item_quantity(cart.id, product_id, new_quantity)
        self._evict_for(principal.username)
        return cart_dict(self.store.get_cart(cart.id))

    def remove_product(self, principal: Principal, cart_id: int, product_id: int) -> str:
        cart = self.store.get_cart(cart_id)
        if cart is None:
            raise NotFoundError.of("Cart", "cartId", cart_id)
        if cart.user_id != principal.user_id and not principal.is_admin:
            raise ForbiddenError("You can only modify your own cart")
        line = next((i for i in cart.items if i.product_id == product_id), None)
        if line is None:
            raise NotFoundError.of("Product", "productId", product_id)
        self.store.remove_cart_item(cart_id, product_id)
        if cart.user_id == principal.user_id:
            self._evict_for(principal.username)
        else:
            # Owner's username is not at hand; drop the whole region.
            self.cache.evict(CARTS)
        return f"Product {line.product_name} removed from the cart !!!"
