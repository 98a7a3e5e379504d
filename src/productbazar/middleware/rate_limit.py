"""Per-IP, per-minute rate limiting backed by Redis.

Each IP gets a counter key like ``productbazar:rl:{ip}:{bucket}:{minute}``.
Login, registration, OTP and password endpoints share a stricter bucket.
Limiting is skipped entirely while Redis is unavailable.
"""

import ipaddress
import time
from collections.abc import Sequence

import redis.asyncio as aioredis
import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from productbazar.exceptions import error_body
from productbazar.realtime.pubsub import get_redis

logger = structlog.get_logger()

AUTH_PATH_PREFIXES = (
    "/auth/login",
    "/auth/register",
    "/auth/forgot-password",
    "/auth/reset-password",
)
AUTH_PATH_SUFFIXES = ("/request-otp", "/verify-otp")


def is_auth_path(path: str) -> bool:
    return path.startswith(AUTH_PATH_PREFIXES) or (
        path.startswith("/auth/") and path.endswith(AUTH_PATH_SUFFIXES)
    )


def is_trusted_proxy(host: str, trusted_proxies: Sequence[str]) -> bool:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return any(address in ipaddress.ip_network(cidr, strict=False) for cidr in trusted_proxies)


def client_ip(request: Request, trusted_proxies: Sequence[str] = ()) -> str:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and is_trusted_proxy(peer, trusted_proxies):
        return forwarded.split(",")[0].strip()
    return peer


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(
        self,
        app,
        default_rpm: int = 100,
        auth_rpm: int = 10,
        trusted_proxies: Sequence[str] = (),
    ):
        super().__init__(app)
        self.trusted_proxies = tuple(trusted_proxies)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        auth = is_auth_path(request.url.path)
        rpm = self.auth_rpm if auth else self.default_rpm
        bucket = "auth" if auth else "api"
        window = int(time.time() // 60)
        key = f"productbazar:rl:{client_ip(request, self.trusted_proxies)}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except aioredis.RedisError as e:
            logger.warning("rate_limit_unavailable", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit_exceeded", bucket=bucket, count=count)
            return JSONResponse(
                status_code=429,
                content=error_body(
                    "Too many requests, please try again later.", "RATE_LIMITED"
                ),
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
