"""
api/routes/users.py -- Admin user management.

Routes:
  GET    /api/admin/users             -- paginated user list
  DELETE /api/admin/users/{user_id}   -- delete an account
  GET    /api/admin/sellers           -- paginated seller list (cached: sellers)

Deleting a user removes the identity, its role links, its cart and its
address book. Order history is kept; orders reference the email, not the
user row. User ids are never reused.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, PageResponse, UserSummary
from api.pagination import page_params
from auth.dependencies import require_admin
from auth.models import AppRole, Principal, User
from auth.store import UserStore
from cache.regions import CARTS, SELLERS
from cache.service import CacheService
from core.errors import BadRequestError, NotFoundError
from shop.paging import PageRequest, page_envelope
from shop.store import ShopStore

logger = logging.getLogger("storefront.api.users")

router = APIRouter()


def user_dict(user: User) -> dict:
    return {
        "user_id": user.id,
        "username": user.username,
        "email": user.email,
        "roles": sorted(user.roles),
        "created_at": user.created_at,
    }


@router.get("/admin/users", response_model=PageResponse[UserSummary])
def list_users(
    request: Request,
    page: PageRequest = Depends(page_params("user_id")),
    admin: Principal = Depends(require_admin),
) -> dict:
    user_store: UserStore = request.app.state.user_store
    try:
        users, total = user_store.page_users(page.offset, page.page_size, page.sort_by, page.descending)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc
    return page_envelope([user_dict(u) for u in users], page, total)


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
def delete_user(
    request: Request,
    user_id: int,
    admin: Principal = Depends(require_admin),
) -> MessageResponse:
    """Delete a user account. Admins cannot delete themselves."""
    user_store: UserStore = request.app.state.user_store
    shop_store: ShopStore = request.app.state.shop_store
    cache: CacheService = request.app.state.cache

    if user_id == admin.user_id:
        raise BadRequestError("You cannot delete your own account.")
    target = user_store.get_by_id(user_id)
    if target is None:
        raise NotFoundError.of("User", "userId", user_id)

    user_store.delete_user(user_id)
    shop_store.delete_user_data(user_id)
    cache.evict_user_details(target.username)
    cache.evict(SELLERS)
    cache.evict(CARTS)
    logger.info("User %d (%s) deleted by %s", user_id, target.username, admin.username)
    return MessageResponse(message=f"User {target.username} deleted")


@router.get("/admin/sellers", response_model=PageResponse[UserSummary])
def list_sellers(
    request: Request,
    page: PageRequest = Depends(page_params("user_id")),
    admin: Principal = Depends(require_admin),
) -> dict:
    user_store: UserStore = request.app.state.user_store
    cache: CacheService = request.app.state.cache

    def _compute() -> dict:
        try:
            sellers, total = user_store.page_users(
                page.offset, page.page_size, page.sort_by, page.descending, role=AppRole.SELLER.value
            )
        except ValueError as exc:
            raise BadRequestError(str(exc)) from exc
        return page_envelope([user_dict(u) for u in sellers], page, total)

    return cache.get_or_compute(SELLERS, page.cache_key(), _compute)
