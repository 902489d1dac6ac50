"""
api/main.py -- FastAPI application entry point for the storefront backend.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. log_requests      -- one access-log line per request, rejections included
  2. CORSMiddleware    -- CORS headers for the configured browser origins
  3. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter
  4. security_filter   -- token -> Principal, then the path/role policy (401/403)

Lifespan handles startup (stores, cache, services, policy, purge task) and
shutdown (cancel purge task, close connections) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.addresses import router as addresses_router
from api.routes.auth import router as auth_router
from api.routes.cache import router as cache_router
from api.routes.carts import router as carts_router
from api.routes.categories import router as categories_router
from api.routes.orders import router as orders_router
from api.routes.products import router as products_router
from api.routes.users import router as users_router
from auth.middleware import security_filter
from auth.policy import AuthorizationPolicy
from auth.store import UserStore
from cache.service import CacheService
from cache.store import open_cache_store
from core.config import get_settings
from core.errors import ShopError, error_body
from shop.addresses import AddressService
from shop.carts import CartService
from shop.catalog import CatalogService
from shop.orders import OrderService
from shop.store import ShopStore

APP_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("storefront.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Purge expired cache entries every hour.

    Redis expires keys itself; for the SQL-table cache this keeps dead rows
    from piling up. CancelledError from task.cancel() during shutdown
    propagates out of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = await asyncio.to_thread(app.state.cache.purge_expired)
        if removed:
            logger.info("Purged %d expired cache entries", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def init_services(app: FastAPI, user_store: UserStore, shop_store: ShopStore, cache: CacheService) -> None:
    """Attach stores, cache and the services built on them to app.state.

    Shared by the lifespan below and by the test suite's patched lifespan so
    both wire the same object graph.
    """
    app.state.user_store = user_store
    app.state.shop_store = shop_store
    app.state.cache = cache
    app.state.catalog = CatalogService(shop_store, cache)
    app.state.carts = CartService(shop_store, cache)
    app.state.orders = OrderService(shop_store, cache)
    app.state.addresses = AddressService(shop_store)
    app.state.policy = AuthorizationPolicy()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: stores before the cache (the SQL cache defaults
    to the same database), cache before the services, purge task last.
    """
    logger.info("Storefront API starting up")
    user_store = UserStore()
    shop_store = ShopStore()
    cache = CacheService(open_cache_store(settings.cache_url, settings.database_url))
    init_services(app, user_store, shop_store, cache)
    logger.info(
        "Stores initialized (users=%s, cache=%s)",
        "present" if user_store.has_users() else "empty",
        type(cache.store).__name__,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.cache.close()
    app.state.shop_store.close()
    app.state.user_store.close()
    logger.info("Storefront API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Storefront API",
    description="E-commerce backend: catalogue, carts, orders, with JWT auth and a region cache.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Each registration wraps everything registered before it, so the last one
# added sees the request first. Register innermost first.
# ---------------------------------------------------------------------------

app.middleware("http")(security_filter)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
    max_age=3600,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

# Documented on every route; the handlers above produce this envelope.
_ERROR_RESPONSES = {code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 422, 500)}

app.include_router(auth_router, prefix="/api", tags=["Auth"], responses=_ERROR_RESPONSES)
app.include_router(users_router, prefix="/api", tags=["Users"], responses=_ERROR_RESPONSES)
app.include_router(categories_router, prefix="/api", tags=["Categories"], responses=_ERROR_RESPONSES)
app.include_router(products_router, prefix="/api", tags=["Products"], responses=_ERROR_RESPONSES)
app.include_router(carts_router, prefix="/api", tags=["Carts"], responses=_ERROR_RESPONSES)
app.include_router(addresses_router, prefix="/api", tags=["Addresses"], responses=_ERROR_RESPONSES)
app.include_router(orders_router, prefix="/api", tags=["Orders"], responses=_ERROR_RESPONSES)
app.include_router(cache_router, prefix="/api", tags=["Cache"], responses=_ERROR_RESPONSES)


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {status, error, message, path} envelope the
# security filter uses for 401/403, so clients parse one error shape.
# ---------------------------------------------------------------------------


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(status_code, message, request.url.path))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    response = _error(request, 429, f"Too many requests: {exc.detail}")
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 naming each invalid field."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return _error(request, 422, problems or "Request validation failed.")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(request, exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(request, exc.status_code, exc.message)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(request, 500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Public and not rate limited.
# ---------------------------------------------------------------------------


def _probe(name: str, check) -> str:
    try:
        return "up" if check() else "down"
    except Exception as exc:
        logger.warning("Health probe %s failed: %s", name, exc)
        return "down"


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database/cache reachability."""
    components = {
        "database": _probe("database", request.app.state.shop_store.ping),
        "cache": _probe("cache", request.app.state.cache.is_available),
    }
    status = "ok" if all(v == "up" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=APP_VERSION, components=components)
