"""
core/errors.py -- Domain exceptions and the shared error envelope.

Services raise ShopError subclasses; api/main.py renders them. The auth
middleware renders 401/403 itself (it runs before routing), so the envelope
builder lives here where both layers can reach it.

Envelope: {"status": 401, "error": "Unauthorized", "message": "...", "path": "/api/..."}
Never carries a stack trace or raw exception text.
"""

from http import HTTPStatus


class ShopError(Exception):
    """Base class for errors that map to a client-visible HTTP status."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(ShopError):
    status_code = 400


class NotFoundError(ShopError):
    status_code = 404

    @classmethod
    def of(cls, resource: str, field: str, value) -> "NotFoundError":
        return cls(f"{resource} not found with {field}: {value}")


class ForbiddenError(ShopError):
    """Authenticated, but the resource belongs to someone else."""

    status_code = 403


class ConflictError(ShopError):
    status_code = 409


class CacheUnavailableError(ShopError):
    """The cache store could not complete an eviction."""

    status_code = 503


def error_label(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def error_body(status_code: int, message: str, path: str) -> dict:
    return {
        "status": status_code,
        "error": error_label(status_code),
        "message": message,
        "path": path,
    }
