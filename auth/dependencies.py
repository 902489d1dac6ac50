"""
auth/dependencies.py -- Token extraction, identity resolution, and FastAPI Depends() helpers.

Two token sources are checked in priority order:
  1. JWT cookie (Settings.auth_cookie_name) -- set by POST /api/auth/signin.
  2. Authorization: Bearer <token> header -- API clients.
First match wins: a present cookie is used even if a header is also sent.

resolve_principal() is the soft variant used by the authentication filter
(returns None on any failure, never raises). The dependencies below read the
Principal the filter attached to request.state:

  get_current_user()    -- raises HTTP 401 if the request is unauthenticated.
  require_roles(*roles) -- raises HTTP 401, or 403 when no listed role is held.

Layer rule: no imports from api/ or shop/. This module may import from
fastapi because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.models import AppRole, Principal
from auth.store import UserStore
from auth.tokens import subject_of, validate_token
from cache.regions import USER_DETAILS
from core.config import get_settings

logger = logging.getLogger("storefront.auth")


def extract_token(request: Request) -> str | None:
    """Return the candidate token from cookie first, then Bearer header, else None."""
    token = request.cookies.get(get_settings().auth_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def load_principal(request: Request, username: str) -> Principal | None:
    """Resolve username -> Principal through the userDetails cache region."""
    user_store: UserStore = request.app.state.user_store
    cache = request.app.state.cache

    def _lookup() -> dict | None:
        user = user_store.get_by_username(username)
        return Principal.from_user(user).to_dict() if user is not None else None

    data = cache.get_or_compute(USER_DETAILS, username, _lookup)
    return Principal.from_dict(data) if data is not None else None


def resolve_principal(request: Request) -> Principal | None:
    """Authenticate the request from its token. Never raises.

    Absence of a token is not an error. An invalid token, an unknown subject,
    or any unexpected failure leaves the request unauthenticated; downstream
    authorization decides whether that matters for the path.
    """
    try:
        token = extract_token(request)
        if token is None:
            return None
        if not validate_token(token):
            return None
        username = subject_of(token)
        principal = load_principal(request, username)
        if principal is None:
            logger.warning("Token subject %r has no matching user", username)
        return principal
    except Exception:
        logger.exception("Cannot set user authentication for %s", request.url.path)
        return None


def get_current_user(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: Principal = Depends(get_current_user)): ...
    """
    principal: Principal | None = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=401, detail="Full authentication is required to access this resource")
    return principal


def require_roles(*roles: AppRole):
    """Build a dependency that requires at least one of the given roles."""
    wanted = frozenset(r.value for r in roles)

    def _dependency(request: Request) -> Principal:
        principal = get_current_user(request)
        if not principal.has_any_role(wanted):
            raise HTTPException(status_code=403, detail="Access denied")
        return principal

    return _dependency


require_admin = require_roles(AppRole.ADMIN)
require_seller = require_roles(AppRole.ADMIN, AppRole.SELLER)
