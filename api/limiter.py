"""
api/limiter.py -- Rate-limit dependencies for TaskFlow routes.

The limiter instance itself is built once in the api/main.py lifespan
(core.ratelimit.build_rate_limiter) and stored on app.state.rate_limiter, so
every route shares one counter store. If each module built its own, each
would get an isolated counter and limits would never trigger.

Two policies, each in its own namespace:
  auth -- AUTH_RATE_LIMIT (default 5/minute),   register + login
  api  -- API_RATE_LIMIT  (default 100/minute), all /tasks routes

Use as a dependency:
    @router.post("/auth/login", dependencies=[Depends(limit_auth_requests)])

Client identity is the first X-Forwarded-For entry, else X-Real-IP, else the
literal "unknown". Known limitation: every client without either header
shares the "unknown" bucket. Deployments must sit behind a proxy that sets
these headers and strips client-supplied values.
"""

from __future__ import annotations

import logging

from fastapi import Request

from core.config import get_settings
from core.errors import RateLimitExceeded
from core.ratelimit import RateLimiter, RateLimitPolicy, RateLimitResult

logger = logging.getLogger("taskflow.ratelimit")

UNKNOWN_CLIENT = "unknown"

_settings = get_settings()

AUTH_POLICY = RateLimitPolicy.parse("auth", _settings.auth_rate_limit)
API_POLICY = RateLimitPolicy.parse("api", _settings.api_rate_limit)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return UNKNOWN_CLIENT


def _enforce(request: Request, policy: RateLimitPolicy) -> RateLimitResult:
    limiter: RateLimiter = request.app.state.rate_limiter
    client = get_client_ip(request)
    result = limiter.check_policy(policy, client)
    if not result.allowed:
        logger.warning("Rate limit exceeded: policy=%s client=%s", policy.namespace, client)
        raise RateLimitExceeded(result.reset_at, result.retry_after())
    return result


def limit_auth_requests(request: Request) -> RateLimitResult:
    return _enforce(request, AUTH_POLICY)


def limit_api_requests(request: Request) -> RateLimitResult:
    return _enforce(request, API_POLICY)
