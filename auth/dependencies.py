"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "accessToken" cookie                  -- browser sessions.

Only access-class tokens are accepted here; a refresh token presented as a
bearer credential fails verification like any forged token.

resolve_principal() is the soft variant (returns None on failure).
require_principal() wraps it and raises AuthenticationError, which the
exception handler in api/main.py renders as a 401 envelope. Every protected
router declares require_principal as a router-level dependency, so it is the
single choke point in front of owned data.

Layer rule: no imports from api/ or tasks/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from auth.models import Principal, TokenKind
from auth.tokens import ACCESS_COOKIE, decode_token
from core.errors import AuthenticationError

_BEARER_PREFIX = "Bearer "


def extract_access_token(request: Request) -> Optional[str]:
    """Return the candidate access token from header or cookie, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        token = auth_header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE) or None


def resolve_principal(request: Request) -> Optional[Principal]:
    """Attempt to authenticate the request. Never raises."""
    token = extract_access_token(request)
    if token is None:
        return None
    payload = decode_token(token, TokenKind.ACCESS)
    if payload is None:
        return None
    return Principal(user_id=payload.user_id, email=payload.email)


def require_principal(request: Request) -> Principal:
    """Require authentication. Raises AuthenticationError (401) if missing.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(require_principal)): ...
    """
    principal = resolve_principal(request)
    if principal is None:
        raise AuthenticationError("Unauthorized")
    return principal
