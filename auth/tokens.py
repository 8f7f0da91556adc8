"""
auth/tokens.py -- JWT session tokens, password hashing, and session cookies.

Security design decisions:
  JWT: python-jose with HS256. Two token classes, each signed with its own
       secret: access tokens (JWT_SECRET_KEY, 15 min) and refresh tokens
       (JWT_REFRESH_SECRET_KEY, 7 days). Tokens also carry a "type" claim that
       is checked on decode, so even a misconfigured deployment cannot accept
       one class in place of the other.

       decode_token() returns None on any failure -- malformed, forged, wrong
       class, expired. It never says which. Callers treat None as
       unauthenticated and the route layer turns that into a 401.

       Expiry is checked against an explicit `now` instead of the wall clock
       inside python-jose, so verification is a pure function of
       (token, secret, now).

       Every token carries a random "jti", so two tokens issued for the same
       user in the same second still differ and refresh always rotates.

  Passwords: bcrypt with a per-hash random salt. The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  Cookies: accessToken and refreshToken are httpOnly, SameSite=Lax, path=/,
       Secure outside debug mode, with max_age equal to the token lifetime so
       cookie and token expire together.

Layer rule: no imports from api/ or tasks/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import TYPE_CHECKING, Optional

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenKind, TokenPair, TokenPayload
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("taskflow.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The registration schema caps
    passwords at 128 characters; multi-byte input past 72 bytes is truncated
    by bcrypt itself.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("taskflow_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> Optional[User]:
    """Verify an email/password pair with timing equalization.

    bcrypt runs whether or not the email exists:
    - Unknown email:  bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _secret_for(kind: TokenKind) -> str:
    if kind is TokenKind.ACCESS:
        return _settings.jwt_secret_key
    return _settings.jwt_refresh_secret_key


def _lifetime_for(kind: TokenKind) -> int:
    if kind is TokenKind.ACCESS:
        return _settings.access_token_expire_seconds
    return _settings.refresh_token_expire_seconds


def _create_token(kind: TokenKind, user_id: int, email: str, now: Optional[float]) -> str:
    issued_at = int(time.time() if now is None else now)
    payload = {
        "sub": email,
        "user_id": user_id,
        "email": email,
        "type": kind.value,
        "iat": issued_at,
        "exp": issued_at + _lifetime_for(kind),
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, _secret_for(kind), algorithm=_ALGORITHM)


def create_access_token(user_id: int, email: str, *, now: Optional[float] = None) -> str:
    """Encode a 15-minute access token signed with JWT_SECRET_KEY.

    Args:
        user_id: Numeric user ID stored in the DB.
        email:   Normalized email, also used as the JWT subject claim.
        now:     Issue time as epoch seconds. Defaults to the wall clock;
                 tests pass a fixed value.
    """
    return _create_token(TokenKind.ACCESS, user_id, email, now)


def create_refresh_token(user_id: int, email: str, *, now: Optional[float] = None) -> str:
    """Encode a 7-day refresh token signed with JWT_REFRESH_SECRET_KEY."""
    return _create_token(TokenKind.REFRESH, user_id, email, now)


def create_token_pair(user_id: int, email: str, *, now: Optional[float] = None) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user_id, email, now=now),
        refresh_token=create_refresh_token(user_id, email, now=now),
    )


def decode_token(token: str, kind: TokenKind, *, now: Optional[float] = None) -> Optional[TokenPayload]:
    """Verify a token of the given class. Returns the payload or None on any failure.

    Returning None (rather than raising) keeps the caller simple: any invalid
    token is treated as unauthenticated. No distinction between "expired" and
    "forged" is surfaced.
    """
    try:
        claims = jwt.decode(
            token,
            _secret_for(kind),
            algorithms=[_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None

    user_id = claims.get("user_id")
    email = claims.get("email")
    issued_at = claims.get("iat")
    expires_at = claims.get("exp")
    if claims.get("type") != kind.value:
        return None
    if not isinstance(user_id, int) or not isinstance(email, str):
        return None
    if not isinstance(issued_at, int) or not isinstance(expires_at, int):
        return None

    current = time.time() if now is None else now
    if expires_at <= current:
        return None

    return TokenPayload(
        user_id=user_id,
        email=email,
        kind=kind,
        issued_at=issued_at,
        expires_at=expires_at,
    )


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookies(response, pair: TokenPair) -> None:
    """Write both session tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS outside debug mode (SECURE_COOKIES overrides).
    max_age: matches the JWT lifetime so both expire together.
    """
    for name, value, max_age in (
        (ACCESS_COOKIE, pair.access_token, _settings.access_token_expire_seconds),
        (REFRESH_COOKIE, pair.refresh_token, _settings.refresh_token_expire_seconds),
    ):
        response.set_cookie(
            name,
            value=value,
            max_age=max_age,
            path="/",
            httponly=True,
            samesite="lax",
            secure=_settings.cookies_secure,
        )


def clear_session_cookies(response) -> None:
    """Expire both session cookies. Safe to call when none were set."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=_settings.cookies_secure,
        )
