"""
shop/models.py -- Domain dataclasses for the storefront catalogue, carts and orders.

These are pure data containers with zero logic beyond derived prices. Business
rules (stock checks, cart totals, checkout) live in the shop services; SQL lives
in shop/store.py.

id is None before the record is written to the database.
"""

from dataclasses import dataclass, field
from typing import Optional


def special_price(price: float, discount: float) -> float:
    """Price after a percentage discount, rounded to cents."""
    return round(price - price * discount / 100.0, 2)


@dataclass
class Category:
    category_name: str
    id: Optional[int] = None


@dataclass
class Product:
    """A listed product.

    special_price is stored (not recomputed on read) so listings and carts
    sort and total on the same value the seller saw when saving.
    """

    product_name: str
    category_id: int
    price: float
    discount: float = 0.0
    quantity: int = 0
    description: str = ""
    image: str = "default.png"
    seller_id: Optional[int] = None
    special_price: float = 0.0
    id: Optional[int] = None


@dataclass
class Address:
    user_id: int
    street: str
    building_name: str
    city: str
    state: str
    country: str
    pincode: str
    id: Optional[int] = None


@dataclass
class CartItem:
    cart_id: int
    product_id: int
    quantity: int
    discount: float
    product_price: float
    product_name: str = ""
    id: Optional[int] = None


@dataclass
class Cart:
    user_id: int
    total_price: float = 0.0
    items: list[CartItem] = field(default_factory=list)
    id: Optional[int] = None


@dataclass
class Payment:
    payment_method: str
    pg_payment_id: Optional[str] = None
    pg_status: Optional[str] = None
    pg_response_message: Optional[str] = None
    pg_name: Optional[str] = None
    id: Optional[int] = None


@dataclass
class OrderItem:
    product_id: int
    product_name: str
    quantity: int
    discount: float
    ordered_product_price: float
    order_id: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Order:
    email: str
    order_date: str  # YYYY-MM-DD
    total_amount: float
    order_status: str
    address_id: int
    payment: Optional[Payment] = None
    items: list[OrderItem] = field(default_factory=list)
    id: Optional[int] = None
