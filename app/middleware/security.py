"""
Security middleware.

Implements:
- Rate limiting of the public invitation endpoints with slowapi
- Security headers (OWASP recommended)
- Request logging with a per-request trace id
"""

import logging
import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def get_client_ip(request: Request) -> str:
    """Client IP for rate limiting. Proxy headers count only when trusted."""
    if not settings.trust_proxy_headers:
        return get_remote_address(request)
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render rate limiting in the standard error envelope."""
    logger.warning(f"Rate limit exceeded: IP={get_client_ip(request)}, path={request.url.path}")
    trace_id = getattr(request.state, "trace_id", None) or uuid.uuid4().hex
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "success": False,
            "error": {
                "kind": "RateLimited",
                "message": "Too many requests. Please try again later.",
                "status": status.HTTP_429_TOO_MANY_REQUESTS,
                "trace_id": trace_id,
            },
        },
        headers={"Retry-After": "60", "X-Request-ID": trace_id},
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds OWASP-recommended security headers."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a trace id to every request and logs failures."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.trace_id = trace_id
        start_time = time.time()
        path = request.url.path

        response = await call_next(request)
        duration_ms = int((time.time() - start_time) * 1000)

        if response.status_code >= 500:
            logger.error(f"[{trace_id}] {request.method} {path} -> {response.status_code} ({duration_ms}ms)")
        elif response.status_code >= 400:
            logger.warning(f"[{trace_id}] {request.method} {path} -> {response.status_code} ({duration_ms}ms)")
        else:
            logger.debug(f"[{trace_id}] {request.method} {path} -> {response.status_code} ({duration_ms}ms)")

        response.headers["X-Request-ID"] = trace_id
        return response


def setup_security_middleware(app: FastAPI) -> None:
    """Configure rate limiting and the security middleware."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Security middleware configured")
