"""
auth/tokens.py -- JWT issue/validate, password hashing, and cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry exactly {sub, iat, exp} where sub
       is the username. Tokens are stateless: validity is signature + expiry,
       there is no server-side revocation list.

       validate_token() never raises. Each failure mode (malformed, expired,
       bad signature, bad claims) is logged with its own reason and collapses
       to False. subject_of() fails closed: it raises InvalidTokenError for
       any token validate_token() would reject.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether a username exists.

  Cookies: HttpOnly and SameSite=Lax always; Secure when SECURE_COOKIES=true.

Layer rule: no imports from api/, shop/, or cache/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("storefront.auth")

_settings = get_settings()

_ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """Raised by subject_of() when the token does not validate."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid token: {reason}")
        self.reason = reason


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length well below that (Pydantic max_length).
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash (corrupt row or legacy value).
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("storefront_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown username: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT issue / validate
# ---------------------------------------------------------------------------


def issue_token(subject: str, expires_in: timedelta | None = None) -> str:
    """Encode a signed JWT whose payload is exactly {sub, iat, exp}.

    Args:
        subject:    Username stored as the JWT subject claim.
        expires_in: Token lifetime. Defaults to Settings.token_expire_seconds.
    """
    lifetime = expires_in if expires_in is not None else timedelta(seconds=_settings.token_expire_seconds)
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def _decode(token: str) -> dict:
    """Verify signature and expiry. Raises InvalidTokenError with a distinct reason."""
    if not token:
        raise InvalidTokenError("empty")
    try:
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise InvalidTokenError("malformed") from exc
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("expired") from exc
    except JWTClaimsError as exc:
        raise InvalidTokenError(f"claims: {exc}") from exc
    except JWTError as exc:
        raise InvalidTokenError("signature") from exc
    if "exp" not in payload:
        raise InvalidTokenError("missing expiry")
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError("missing subject")
    return payload


def validate_token(token: str) -> bool:
    """Return True iff the signature verifies and the token has not expired.

    Never raises. Failures are logged with their reason; callers only see False.
    """
    try:
        _decode(token)
    except InvalidTokenError as exc:
        if exc.reason == "expired":
            logger.info("JWT rejected: token is expired")
        elif exc.reason == "malformed":
            logger.warning("JWT rejected: token is malformed")
        elif exc.reason == "signature":
            logger.warning("JWT rejected: signature verification failed")
        else:
            logger.warning("JWT rejected: %s", exc.reason)
        return False
    return True


def subject_of(token: str) -> str:
    """Return the username carried by a valid token.

    Fails closed: raises InvalidTokenError when the token does not validate,
    so calling this without validate_token() first can never leak a subject
    from an unverified token.
    """
    return _decode(token)["sub"]


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT as the auth cookie on the response.

    httponly=True: scripts cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        _settings.auth_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
        path="/api",
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(
        _settings.auth_cookie_name,
        path="/api",
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )
