"""
api/routes/carts.py -- Shopping cart routes.

Routes:
  POST   /api/carts/products/{product_id}/quantity/{quantity}  -- add a line (creates the cart)
  GET    /api/carts                                            -- every cart (admin)
  GET    /api/carts/users/cart                                 -- caller's cart
  PUT    /api/cart/products/{product_id}/quantity/{operation}  -- operation: add | delete
  DELETE /api/carts/{cart_id}/product/{product_id}             -- remove a line

The cart paths sit outside the role-prefixed trees, so the policy only
requires authentication; the admin listing adds require_admin itself.
"""

from fastapi import APIRouter, Depends, Request

from api.models import CartResponse, MessageResponse
from auth.dependencies import get_current_user, require_admin
from auth.models import Principal
from shop.carts import CartService

router = APIRouter()


@router.post("/carts/products/{product_id}/quantity/{quantity}", response_model=CartResponse, status_code=201)
def add_product_to_cart(
    request: Request,
    product_id: int,
    quantity: int,
    user: Principal = Depends(get_current_user),
) -> dict:
    carts: CartService = request.app.state.carts
    return carts.add_product(user, product_id, quantity)


@router.get("/carts", response_model=list[CartResponse])
def list_carts(request: Request, admin: Principal = Depends(require_admin)) -> list[dict]:
    carts: CartService = request.app.state.carts
    return carts.list_carts()


@router.get("/carts/users/cart", response_model=CartResponse)
def user_cart(request: Request, user: Principal = Depends(get_current_user)) -> dict:
    carts: CartService = request.app.state.carts
    return carts.get_user_cart(user)


@router.put("/cart/products/{product_id}/quantity/{operation}", response_model=CartResponse)
def update_cart_quantity(
    request: Request,
    product_id: int,
    operation: str,
    user: Principal = Depends(get_current_user),
) -> dict:
    """Step a line's quantity by one. Reaching zero removes the line."""
    carts: CartService = request.app.state.carts
    return carts.update_quantity(user, product_id, operation)


@router.delete("/carts/{cart_id}/product/{product_id}", response_model=MessageResponse)
def remove_product_from_cart(
    request: Request,
    cart_id: int,
    product_id: int,
    user: Principal = Depends(get_current_user),
) -> MessageResponse:
    carts: CartService = request.app.state.carts
    return MessageResponse(message=carts.remove_product(user, cart_id, product_id))
