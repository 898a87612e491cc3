"""
Security Module for the WikiGaiaLab workflow API

Implements:
- Rate limiting (IP-based using slowapi)
- Security headers middleware with request IDs for audit logging
- Request size validation
- Secure error response handling

All limits come from :class:`app.config.Settings`; :func:`setup_security`
wires them onto one application instance.
"""

import ipaddress
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Client IP extraction
# =============================================================================

def _is_valid_ip(ip_str: str) -> bool:
    """Validate that a string is a valid IP address (IPv4 or IPv6)."""
    if not ip_str or len(ip_str) > 45:  # Max length for IPv6
        return False
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def _trusted_proxy_count(request: Request) -> int:
    settings: Optional[Settings] = getattr(request.app.state, "settings", None)
    return settings.trusted_proxy_count if settings else 1


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP, trusting only the configured number of proxies.

    X-Forwarded-For can be spoofed by clients but proxies append the
    connecting IP, so the address just left of the trusted proxy chain is
    used.  Example: "spoofed, real-client, proxy1" with one trusted proxy
    yields "real-client".

    Returns:
        The client IP address, or "unknown" if not determinable
    """
    direct_ip = request.client.host if request.client else None
    trusted = _trusted_proxy_count(request)

    if forwarded_for := request.headers.get("X-Forwarded-For"):
        if ips := [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]:
            if len(ips) > trusted:
                client_ip = ips[-(trusted + 1)]
            else:
                client_ip = ips[0]

            # Validate the extracted IP to prevent log injection attacks
            if _is_valid_ip(client_ip):
                return client_ip
            logger.warning(
                "Invalid IP in X-Forwarded-For header: %r", client_ip[:50]
            )

    if real_ip := request.headers.get("X-Real-IP"):
        real_ip = real_ip.strip()
        if _is_valid_ip(real_ip):
            return real_ip
        logger.warning("Invalid X-Real-IP header: %r", real_ip[:50])

    return direct_ip if direct_ip and _is_valid_ip(direct_ip) else "unknown"


# =============================================================================
# Rate Limiter Setup
# =============================================================================

def build_rate_limiter(settings: Settings) -> Limiter:
    """Create the per-application rate limiter."""
    return Limiter(
        key_func=get_client_ip,
        default_limits=[f"{settings.rate_limit_per_minute}/minute"],
        storage_uri="memory://",  # In-memory storage (use Redis for multi-instance)
        strategy="fixed-window",
    )


# =============================================================================
# Security Headers Middleware
# =============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers and a request id to every response, and log one
    line per request with its duration.
    """

    def __init__(self, app, is_production: bool = False):
        super().__init__(app)
        self.is_production = is_production

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if self.is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        response.headers["X-Request-ID"] = request_id
        if not response.headers.get("Cache-Control"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"

        duration = time.time() - start_time
        logger.info(
            "Request completed: %s %s status=%d duration=%.3fs request_id=%s client_ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            request_id,
            get_client_ip(request),
        )
        return response


# =============================================================================
# Request Size Limit Middleware
# =============================================================================

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than the configured limit."""

    def __init__(self, app, max_request_size_mb: int = 1):
        super().__init__(app)
        self.max_request_size_mb = max_request_size_mb
        self.max_bytes = max_request_size_mb * 1024 * 1024

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if content_length := request.headers.get("content-length"):
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={
                        "detail": "Invalid Content-Length header",
                        "code": "INVALID_CONTENT_LENGTH",
                    },
                )
            if size > self.max_bytes:
                return JSONResponse(
                    status_code=413,
                    content={
                        "detail": (
                            "Request body too large. Maximum size is "
                            f"{self.max_request_size_mb}MB."
                        ),
                        "code": "REQUEST_TOO_LARGE",
                    },
                )

        return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

def _cors_headers(request: Request, allowed_origins: list[str]) -> dict[str, str]:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    headers = {"X-Request-ID": request_id}
    origin = request.headers.get("origin", "")
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def create_secure_exception_handler(settings: Settings) -> Callable:
    """
    Handle unhandled exceptions: full detail in development, a generic
    message in production.  The stack trace is always logged.
    """

    async def secure_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        headers = _cors_headers(request, settings.allowed_origins)
        request_id = headers["X-Request-ID"]

        logger.error(
            "Unhandled exception: %s: %s request_id=%s path=%s method=%s client_ip=%s",
            type(exc).__name__,
            exc,
            request_id,
            request.url.path,
            request.method,
            get_client_ip(request),
            exc_info=exc,
        )

        if settings.is_production:
            content = {
                "detail": "An internal server error occurred. Please try again later.",
                "code": "INTERNAL_ERROR",
                "request_id": request_id,
            }
        else:
            content = {
                "detail": str(exc),
                "error_type": type(exc).__name__,
                "request_id": request_id,
            }
        return JSONResponse(status_code=500, content=content, headers=headers)

    return secure_exception_handler


def create_rate_limit_exceeded_handler(settings: Settings) -> Callable:
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        headers = _cors_headers(request, settings.allowed_origins)
        headers["Retry-After"] = "60"
        log_security_event("rate_limit_exceeded", request)
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Rate limit exceeded. Please slow down your requests.",
                "code": "RATE_LIMIT_EXCEEDED",
                "retry_after_seconds": 60,
                "request_id": headers["X-Request-ID"],
            },
            headers=headers,
        )

    return rate_limit_handler


def create_http_exception_handler(settings: Settings) -> Callable:
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        headers = _cors_headers(request, settings.allowed_origins)
        if exc.headers:
            headers.update(exc.headers)

        if exc.status_code == 401:
            log_security_event("authentication_failed", request)
        elif exc.status_code == 403:
            log_security_event("authorization_denied", request)

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "request_id": headers["X-Request-ID"]},
            headers=headers,
        )

    return http_exception_handler


# =============================================================================
# Security Setup Function
# =============================================================================

def setup_security(app: FastAPI, settings: Settings) -> None:
    """
    Configure rate limiting, security headers, request size limits and
    error handlers on *app*.  Call after the CORS middleware is added.
    """
    app.state.limiter = build_rate_limiter(settings)

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, is_production=settings.is_production)
    app.add_middleware(
        RequestSizeLimitMiddleware, max_request_size_mb=settings.max_request_size_mb
    )

    app.add_exception_handler(
        RateLimitExceeded, create_rate_limit_exceeded_handler(settings)
    )
    app.add_exception_handler(Exception, create_secure_exception_handler(settings))
    app.add_exception_handler(HTTPException, create_http_exception_handler(settings))

    logger.info(
        "Security middleware configured: rate_limit=%d/min, max_request_size=%dMB, "
        "environment=%s",
        settings.rate_limit_per_minute,
        settings.max_request_size_mb,
        settings.environment,
    )


# =============================================================================
# Audit Logging Utilities
# =============================================================================

def log_security_event(
    event_type: str,
    request: Request,
    details: Optional[dict] = None,
) -> None:
    """
    Log a security-relevant event for audit purposes.

    Args:
        event_type: Type of security event (e.g., 'auth_failure', 'rate_limit')
        request: The request object
        details: Optional additional details to log
    """
    log_data = {
        "event_type": event_type,
        "request_id": getattr(request.state, "request_id", "unknown"),
        "client_ip": get_client_ip(request),
        "path": request.url.path,
        "method": request.method,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        log_data |= details

    logger.warning("SECURITY_EVENT: %s", log_data)
