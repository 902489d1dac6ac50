"""
api/routes/auth.py -- Sign-in, sign-up, sign-out and current-identity endpoints.

Routes:
  POST /api/auth/signin    -- password login; sets JWT cookie and returns the token
  POST /api/auth/signup    -- register a user or seller account
  POST /api/auth/signout   -- clears the JWT cookie
  GET  /api/auth/user      -- current identity (requires auth)
  GET  /api/auth/username  -- current username as text/plain (requires auth)

Security:
  Sign-in is rate-limited per client IP (Settings.login_rate_limit).
  authenticate_user() provides timing equalization -- use it, never inline.
  Sign-in responses carry Cache-Control: no-store.
  Sign-up cannot grant ROLE_ADMIN; admins are created with `python main.py create-admin`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import MessageResponse, SigninRequest, SignupRequest, SignupRole, UserInfoResponse
from auth.dependencies import get_current_user
from auth.models import AppRole, Principal, User
from auth.store import UserStore
from auth.tokens import authenticate_user, clear_auth_cookie, hash_password, issue_token, set_auth_cookie
from cache.service import CacheService
from core.config import get_settings
from core.errors import BadRequestError, error_body

logger = logging.getLogger("storefront.api.auth")

# Auth policy:
# - POST /api/auth/signin, /signup, /signout: public (see auth/policy.py)
# - GET  /api/auth/user, /username:          requires auth (get_current_user)
router = APIRouter()

_SIGNUP_ROLES = {
    SignupRole.user: AppRole.USER.value,
    SignupRole.seller: AppRole.SELLER.value,
}


def _identity(principal: Principal, token: str | None = None) -> UserInfoResponse:
    return UserInfoResponse(
        id=principal.user_id,
        username=principal.username,
        email=principal.email,
        roles=sorted(principal.roles),
        jwt_token=token,
    )


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/signin", response_model=UserInfoResponse)
def signin(request: Request, body: SigninRequest) -> JSONResponse:
    """Authenticate with username and password; set the JWT cookie.

    Wrong username and wrong password produce the same 401 so the response
    does not reveal which usernames exist.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        logger.info("Failed sign-in for %r", body.username)
        resp = JSONResponse(status_code=401, content=error_body(401, "Bad credentials", request.url.path))
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = issue_token(user.username)
    resp = JSONResponse(content=_identity(Principal.from_user(user), token).model_dump())
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/signup", response_model=MessageResponse)
def signup(request: Request, body: SignupRequest) -> MessageResponse:
    """Register a new account. Duplicate username or email -> 400."""
    user_store: UserStore = request.app.state.user_store
    cache: CacheService = request.app.state.cache

    if SignupRole.admin in body.roles:
        raise BadRequestError("Error: Admin accounts cannot be created through sign-up!")
    if user_store.exists_by_username(body.username):
        raise BadRequestError("Error: Username is already taken!")
    if user_store.exists_by_email(body.email):
        raise BadRequestError("Error: Email is already in use!")

    roles = {_SIGNUP_ROLES[r] for r in body.roles}
    if AppRole.SELLER.value in roles:
        # Sellers also shop.
        roles.add(AppRole.USER.value)
    try:
        user_store.create_user(
            User(
                username=body.username,
                email=body.email,
                hashed_password=hash_password(body.password),
                roles=roles,
            )
        )
    except IntegrityError as exc:
        raise BadRequestError("Error: Username or email is already in use!") from exc

    cache.clear_user_caches()
    logger.info("Registered %s with roles %s", body.username, sorted(roles))
    return MessageResponse(message="User registered successfully!")


@router.post("/auth/signout", response_model=MessageResponse)
async def signout() -> JSONResponse:
    """Clear the JWT cookie. Issued tokens stay valid until they expire."""
    resp = JSONResponse(content={"message": "You've been signed out!"})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/user", response_model=UserInfoResponse)
async def current_user(principal: Principal = Depends(get_current_user)) -> UserInfoResponse:
    """Return identity information for the currently authenticated user."""
    return _identity(principal)


@router.get("/auth/username", response_class=PlainTextResponse)
async def current_username(principal: Principal = Depends(get_current_user)) -> str:
    return principal.username
