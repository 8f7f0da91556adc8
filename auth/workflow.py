"""
auth/workflow.py -- Register / login / refresh orchestration.

Each function is one request's worth of work: read the store, run the
credential checks, issue a fresh token pair. Nothing persists across requests
except the user row itself -- tokens are stateless.

Error messages are part of the public contract:
  "Email already registered"   -- register, duplicate email (any case)
  "Invalid email or password"  -- login, unknown email AND wrong password
  "Invalid refresh token"      -- refresh, bad/expired/forged token
  "User not found"             -- refresh or /me after the account was deleted

Setting cookies is the route's job (api/routes/v1/auth.py); these functions
return the tokens and leave transport to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from auth.models import Principal, TokenKind, TokenPair, User
from auth.store import UserStore, normalize_email
from auth.tokens import authenticate_user, create_token_pair, decode_token, hash_password
from core.errors import AuthenticationError, ConflictError, NotFoundError

logger = logging.getLogger("taskflow.auth")

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "Email already registered"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
USER_NOT_FOUND = "User not found"


@dataclass(frozen=True)
class SessionResult:
    user: User
    tokens: TokenPair


def register(store: UserStore, email: str, password: str, name: str) -> SessionResult:
    """Create an account and open a session for it.

    The existence check gives the friendly error in the common case; the
    UNIQUE index catches the concurrent-registration race.
    """
    email = normalize_email(email)
    if store.get_by_email(email) is not None:
        raise ConflictError(EMAIL_TAKEN)

    try:
        user_id = store.create_user(User(email=email, name=name.strip(), hashed_password=hash_password(password)))
    except IntegrityError as exc:
        raise ConflictError(EMAIL_TAKEN) from exc

    user = store.get_by_id(user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    logger.info("Registered user id=%d", user_id)
    return SessionResult(user=user, tokens=create_token_pair(user.id, user.email))


def login(store: UserStore, email: str, password: str) -> SessionResult:
    """Verify credentials and issue a fresh token pair.

    Unknown email and wrong password raise the identical error so the
    response cannot be used to enumerate accounts.
    """
    user = authenticate_user(store, email, password)
    if user is None:
        logger.info("Failed login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)
    return SessionResult(user=user, tokens=create_token_pair(user.id, user.email))


def refresh(store: UserStore, refresh_token: str) -> TokenPair:
    """Rotate a session: verify the refresh token and issue a brand-new pair.

    Previously issued access tokens are not revoked; they lapse at their own
    expiry.
    """
    payload = decode_token(refresh_token, TokenKind.REFRESH)
    if payload is None:
        raise AuthenticationError(INVALID_REFRESH_TOKEN)

    user = store.get_by_id(payload.user_id)
    if user is None:
        logger.info("Refresh for deleted user id=%d", payload.user_id)
        raise AuthenticationError(USER_NOT_FOUND)
    return create_token_pair(user.id, user.email)


def get_current_user(store: UserStore, principal: Principal) -> User:
    user = store.get_by_id(principal.user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    return user
