"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create account; sets session cookies; 201
  POST /api/v1/auth/login     -- password login; sets session cookies
  POST /api/v1/auth/refresh   -- rotate tokens (cookie or body refreshToken)
  POST /api/v1/auth/logout    -- clears session cookies; always 200
  GET  /api/v1/auth/me        -- current user (requires auth)

Security:
  register/login are rate-limited by the auth policy (5 requests/minute/IP).
  login returns one generic error for unknown email and wrong password.
  Responses that carry tokens send Cache-Control: no-store.
  Logout is stateless: the still-valid access token lapses at its 15-minute
  expiry; nothing is blacklisted server-side.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from api.limiter import limit_auth_requests
from api.models import (
    AccessTokenPayload,
    AuthPayload,
    LoginRequest,
    MePayload,
    MessagePayload,
    RefreshRequest,
    RegisterRequest,
    SuccessResponse,
    UserOut,
)
from api.responses import error_response, success_response
from auth import workflow
from auth.dependencies import require_principal
from auth.models import Principal
from auth.store import UserStore
from auth.tokens import REFRESH_COOKIE, clear_session_cookies, set_session_cookies

# Auth policy:
# - POST /api/v1/auth/register: public, auth rate bucket
# - POST /api/v1/auth/login:    public, auth rate bucket
# - POST /api/v1/auth/refresh:  public -- the refresh token is the credential
# - POST /api/v1/auth/logout:   public -- clearing cookies needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (require_principal)
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post(
    "/auth/register",
    response_model=SuccessResponse[AuthPayload],
    status_code=201,
    dependencies=[Depends(limit_auth_requests)],
)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and open a session for it."""
    user_store: UserStore = request.app.state.user_store
    result = workflow.register(user_store, body.email, body.password, body.name)
    resp = success_response(
        AuthPayload(user=UserOut.from_user(result.user), access_token=result.tokens.access_token),
        status_code=201,
    )
    set_session_cookies(resp, result.tokens)
    return _no_store(resp)


@router.post(
    "/auth/login",
    response_model=SuccessResponse[AuthPayload],
    dependencies=[Depends(limit_auth_requests)],
)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set session cookies.

    Returns the same "Invalid email or password" error for an unknown email
    and for a wrong password.
    """
    user_store: UserStore = request.app.state.user_store
    result = workflow.login(user_store, body.email, body.password)
    resp = success_response(AuthPayload(user=UserOut.from_user(result.user), access_token=result.tokens.access_token))
    set_session_cookies(resp, result.tokens)
    return _no_store(resp)


async def _presented_refresh_token(request: Request) -> Optional[str]:
    """Return the refresh token from the cookie, else from the JSON body.

    The body is only read when the cookie is absent, so a cookie session
    succeeds whatever the body holds. A body that is present but malformed
    is a validation error.
    """
    token = request.cookies.get(REFRESH_COOKIE)
    if token:
        return token
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        body = RefreshRequest.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc
    return body.refresh_token


@router.post(
    "/auth/refresh",
    response_model=SuccessResponse[AccessTokenPayload],
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {"application/json": {"schema": RefreshRequest.model_json_schema(by_alias=True)}},
        }
    },
)
def refresh(request: Request, token: Optional[str] = Depends(_presented_refresh_token)) -> JSONResponse:
    """Exchange a refresh token for a brand-new token pair.

    The refreshToken cookie wins; the JSON body is the fallback for clients
    that do not keep cookies.
    """
    if not token:
        return _no_store(error_response(401, "Refresh token required"))

    user_store: UserStore = request.app.state.user_store
    pair = workflow.refresh(user_store, token)
    resp = success_response(AccessTokenPayload(access_token=pair.access_token))
    set_session_cookies(resp, pair)
    return _no_store(resp)


@router.post("/auth/logout", response_model=SuccessResponse[MessagePayload])
async def logout() -> JSONResponse:
    """Clear both session cookies. Idempotent -- succeeds with or without a session."""
    resp = success_response(MessagePayload(message="Logged out successfully"))
    clear_session_cookies(resp)
    return resp


@router.get("/auth/me", response_model=SuccessResponse[MePayload])
def me(request: Request, principal: Principal = Depends(require_principal)) -> JSONResponse:
    """Return the currently authenticated user."""
    user_store: UserStore = request.app.state.user_store
    user = workflow.get_current_user(user_store, principal)
    return success_response(MePayload(user=UserOut.from_user(user)))
