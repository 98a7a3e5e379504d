"""HTTP middleware: request ids, security headers and rate limiting."""

from productbazar.middleware.rate_limit import RateLimitMiddleware
from productbazar.middleware.request_id import RequestIdMiddleware
from productbazar.middleware.security import SecurityHeadersMiddleware

__all__ = ["RateLimitMiddleware", "RequestIdMiddleware", "SecurityHeadersMiddleware"]
