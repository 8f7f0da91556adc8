"""
api/main.py -- FastAPI application entry point for TaskFlow.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. security_headers      -- X-Frame-Options, nosniff, Referrer-Policy, ...
  4. log_requests          -- one log line per request with latency

Rate limiting is not middleware: each router declares the policy it needs as
a dependency (api/limiter.py), so health checks and logout are never throttled.

Lifespan handles startup (stores, rate limiter) and shutdown (dispose DB
engines) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import FieldError, HealthResponse
from api.responses import error_response, success_response
from api.routes.v1.auth import router as auth_router
from api.routes.v1.tasks import router as tasks_router
from auth.store import UserStore
from core.config import get_settings
from core.errors import GENERIC_ERROR_MESSAGE, AppError, RateLimitExceeded, public_details, public_message
from core.ratelimit import build_rate_limiter
from tasks.store import TaskStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskflow.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The rate limiter backend is chosen here, once, from settings.
    """
    logger.info("TaskFlow API starting up (debug=%s)", _settings.debug)
    app.state.user_store = UserStore(_settings.database_url)
    app.state.task_store = TaskStore(_settings.database_url)
    app.state.rate_limiter = build_rate_limiter(_settings)
    logger.info("Stores and rate limiter initialized")

    yield

    app.state.task_store.close()
    app.state.user_store.close()
    logger.info("TaskFlow API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TaskFlow API",
    description="Multi-user task tracking with JWT sessions.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# The LAST add_middleware() call becomes the OUTERMOST layer. Register in
# reverse of the order you want a request to encounter them.
# ---------------------------------------------------------------------------


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


_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    if not _settings.debug:
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(tasks_router, prefix="/api/v1", tags=["Tasks"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope so API clients can parse errors
# uniformly. What the client may see is decided by the error's kind
# (core/errors.py), never by matching on message text.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with the window reset time in the body and Retry-After header."""
    reset = datetime.fromtimestamp(exc.reset_at, tz=timezone.utc)
    return error_response(
        429,
        exc.message,
        reset=reset.isoformat().replace("+00:00", "Z"),
        headers={"Retry-After": str(exc.retry_after)},
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Map a domain error to its status code and exposure policy."""
    debug = get_settings().debug
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s", exc.kind.value, request.method, request.url.path)
    return error_response(
        exc.status_code,
        public_message(exc, debug),
        details=public_details(exc, debug),
    )


def _field_errors(exc: RequestValidationError) -> list[FieldError]:
    """Flatten Pydantic errors into FieldError entries ({field, message} on the wire).

    The leading location segment ("body", "query", "path") is dropped, and
    the "Value error, " prefix Pydantic adds to custom validator messages is
    stripped.
    """
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path", "header", "cookie"):
            loc = loc[1:]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        details.append(FieldError(field=".".join(loc), message=message))
    return details


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level details when request input fails validation."""
    return error_response(400, "Validation failed", details=_field_errors(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing-level errors (unknown path, wrong method) in the envelope."""
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The traceback goes to the log only. Production clients receive a generic
    message; debug mode shows the exception text to speed up local work.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    message = (str(exc) or GENERIC_ERROR_MESSAGE) if get_settings().debug else GENERIC_ERROR_MESSAGE
    return error_response(500, message)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"], response_model=None)
async def health() -> JSONResponse:
    """Return API liveness and current version."""
    return success_response(HealthResponse(version=VERSION))
