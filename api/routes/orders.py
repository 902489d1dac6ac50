"""
api/routes/orders.py -- Checkout, order history and order administration.

Routes:
  POST /api/order/users/payments/{payment_method}  -- place an order from the caller's cart
  GET  /api/order/users/orders                     -- caller's orders (cached: orders)
  GET  /api/admin/orders                           -- paginated, every order (cached: orders)
  GET  /api/seller/orders                          -- paginated, orders holding the caller's products
  PUT  /api/admin/orders/{order_id}/status         -- set order status
  GET  /api/admin/app/analytics                    -- product count, order count, revenue

payment_method is free text ("card", "paypal", ...). The pg_* body fields are
the client's payment gateway result and are stored as supplied.
"""

from fastapi import APIRouter, Depends, Request

from api.models import AnalyticsResponse, OrderOut, OrderRequest, OrderStatusUpdate, PageResponse
from api.pagination import page_params
from auth.dependencies import get_current_user, require_admin, require_seller
from auth.models import Principal
from shop.orders import OrderService
from shop.paging import PageRequest

router = APIRouter()

_order_page = page_params("order_id")


@router.post("/order/users/payments/{payment_method}", response_model=OrderOut, status_code=201)
def place_order(
    request: Request,
    payment_method: str,
    body: OrderRequest,
    user: Principal = Depends(get_current_user),
) -> dict:
    """Check out the caller's cart. 400 when the cart is empty or stock ran out."""
    orders: OrderService = request.app.state.orders
    return orders.place_order(user, payment_method, body.model_dump())


@router.get("/order/users/orders", response_model=list[OrderOut])
def user_orders(request: Request, user: Principal = Depends(get_current_user)) -> list[dict]:
    orders: OrderService = request.app.state.orders
    return orders.user_orders(user)


@router.get("/admin/orders", response_model=PageResponse[OrderOut])
def admin_list_orders(
    request: Request,
    page: PageRequest = Depends(_order_page),
    admin: Principal = Depends(require_admin),
) -> dict:
    orders: OrderService = request.app.state.orders
    return orders.list_orders(page)


@router.get("/seller/orders", response_model=PageResponse[OrderOut])
def seller_list_orders(
    request: Request,
    page: PageRequest = Depends(_order_page),
    seller: Principal = Depends(require_seller),
) -> dict:
    orders: OrderService = request.app.state.orders
    return orders.list_orders(page, seller_id=seller.user_id)


@router.put("/admin/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdate,
    admin: Principal = Depends(require_admin),
) -> dict:
    orders: OrderService = request.app.state.orders
    return orders.update_status(order_id, body.status)


@router.get("/admin/app/analytics", response_model=AnalyticsResponse)
def analytics(request: Request, admin: Principal = Depends(require_admin)) -> dict:
    orders: OrderService = request.app.state.orders
    return orders.analytics()
