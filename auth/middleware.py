"""
auth/middleware.py -- Per-request authentication filter and authorization check.

Registered in api/main.py with @app.middleware("http"), inside CORS so that
preflight requests and error responses still receive CORS headers.

Pipeline for every request:
  1. authentication filter -- resolve_principal() turns the cookie/Bearer
     token into a Principal (or None) and attaches it to request.state.
     It never short-circuits; failures just leave the request anonymous.
  2. authorization -- the static policy decides ALLOW / 401 / 403 for the
     (method, path) pair. Rejections are rendered with the shared error
     envelope and never reach a route handler.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from auth.dependencies import resolve_principal
from auth.policy import AuthorizationPolicy, Decision
from core.errors import error_body

logger = logging.getLogger("storefront.auth")

_MESSAGES = {
    Decision.UNAUTHENTICATED: (401, "Full authentication is required to access this resource"),
    Decision.FORBIDDEN: (403, "Access denied"),
}


def authenticate(request: Request) -> None:
    request.state.principal = resolve_principal(request)


def authorize(request: Request, policy: AuthorizationPolicy) -> JSONResponse | None:
    """Return an error response when the policy rejects the request, else None."""
    principal = request.state.principal
    decision = policy.decide(request.method, request.url.path, principal)
    if decision is Decision.ALLOW:
        return None
    status_code, message = _MESSAGES[decision]
    logger.info(
        "%s %s rejected (%s) for %s",
        request.method,
        request.url.path,
        decision.value,
        principal.username if principal else "anonymous",
    )
    return JSONResponse(status_code=status_code, content=error_body(status_code, message, request.url.path))


async def security_filter(request: Request, call_next):
    # Identity lookup hits the user store; keep it off the event loop.
    await run_in_threadpool(authenticate, request)
    policy: AuthorizationPolicy = request.app.state.policy
    rejection = authorize(request, policy)
    if rejection is not None:
        return rejection
    return await call_next(request)
