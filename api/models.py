"""
API request and response models for the storefront REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
shop/models.py, which own the internal domain representation. Services return
plain dicts; route handlers validate them against the response models here.

Separation of concerns: auth/ + shop/ models = domain truth; api/ models = API contract.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    status: int
    error: str
    message: str
    path: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class PageResponse(BaseModel, Generic[T]):
    """Paginated listing envelope."""

    model_config = ConfigDict(frozen=True)

    content: list[T]
    page_number: int
    page_size: int
    total_elements: int
    total_pages: int
    last_page: bool


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class SignupRole(str, Enum):
    user = "user"
    seller = "seller"
    admin = "admin"


class SigninRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1, max_length=120)


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/signup.

    roles defaults to ["user"]. "admin" is accepted by the schema so the
    handler can reject it with a clear message instead of a validation error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=20)
    email: str = Field(max_length=50, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=40)
    roles: list[SignupRole] = Field(default_factory=lambda: [SignupRole.user])


class UserInfoResponse(BaseModel):
    """Current identity. jwt_token is only filled on sign-in."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    roles: list[str]
    jwt_token: Optional[str] = None


class UserSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str
    email: str
    roles: list[str]
    created_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class CategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category_name: str = Field(min_length=3, max_length=100)


class CategoryOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: int
    category_name: str


class ProductIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_name: str = Field(min_length=3, max_length=255)
    description: str = Field(default="", max_length=2000)
    price: float = Field(ge=0)
    discount: float = Field(default=0.0, ge=0, le=100)
    quantity: int = Field(default=0, ge=0)
    image: Optional[str] = Field(default=None, max_length=255)


class ProductUpdate(BaseModel):
    """Partial product update. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    product_name: Optional[str] = Field(default=None, min_length=3, max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    price: Optional[float] = Field(default=None, ge=0)
    discount: Optional[float] = Field(default=None, ge=0, le=100)
    quantity: Optional[int] = Field(default=None, ge=0)
    category_id: Optional[int] = None


class ProductImageUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    image: str = Field(min_length=1, max_length=255)


class ProductOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str
    description: str
    price: float
    discount: float
    special_price: float
    quantity: int
    image: str
    category_id: int
    seller_id: Optional[int] = None


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------


class CartItemOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str
    quantity: int
    discount: float
    product_price: float


class CartResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    cart_id: int
    user_id: int
    total_price: float
    items: list[CartItemOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


class AddressIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(min_length=5, max_length=255)
    building_name: str = Field(min_length=5, max_length=255)
    city: str = Field(min_length=2, max_length=100)
    state: str = Field(min_length=2, max_length=100)
    country: str = Field(min_length=2, max_length=100)
    pincode: str = Field(min_length=5, max_length=20)


class AddressOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    address_id: int
    user_id: int
    street: str
    building_name: str
    city: str
    state: str
    country: str
    pincode: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderRequest(BaseModel):
    """Checkout body. pg_* fields are the client's payment gateway result, stored as-is."""

    model_config = ConfigDict(str_strip_whitespace=True)

    address_id: int
    pg_name: Optional[str] = Field(default=None, max_length=50)
    pg_payment_id: Optional[str] = Field(default=None, max_length=255)
    pg_status: Optional[str] = Field(default=None, max_length=50)
    pg_response_message: Optional[str] = Field(default=None, max_length=1000)


class PaymentOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    payment_method: str
    pg_payment_id: Optional[str] = None
    pg_status: Optional[str] = None
    pg_response_message: Optional[str] = None
    pg_name: Optional[str] = None


class OrderItemOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    product_name: str
    quantity: int
    discount: float
    ordered_product_price: float


class OrderOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: int
    email: str
    order_date: str
    total_amount: float
    order_status: str
    address_id: int
    payment: Optional[PaymentOut] = None
    items: list[OrderItemOut] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: str = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Admin / operations
# ---------------------------------------------------------------------------


class AnalyticsResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_count: int
    total_orders: int
    total_revenue: float


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
