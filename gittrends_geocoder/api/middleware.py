"""API middleware: request logging, error handling, security headers, rate limiting.

Starlette middleware is a stack (last added, first executed).  ``create_app``
adds them so that a request flows:

    Client -> RequestLogging -> RateLimit -> SecurityHeaders -> ErrorHandling -> route

RequestLoggingMiddleware therefore sees the final status code, including
429s from the rate limiter and the JSON errors produced by
ErrorHandlingMiddleware.
"""

from __future__ import annotations

import time

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from gittrends_geocoder.api.schemas import ErrorResponse, MessageResponse, RateLimitResponse
from gittrends_geocoder.utils.errors import (
    GeocoderError,
    InvalidQueryError,
    ProviderError,
    QueueFullError,
    QueueTimeoutError,
    RateLimitError,
    RequestCancelledError,
)
from gittrends_geocoder.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# nginx's "client closed request"; the client is gone, so this is only logged.
HTTP_CLIENT_CLOSED_REQUEST = 499

_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
    "img-src 'self' data: https://fastapi.tiangolo.com; "
    "connect-src 'self'"
)


def status_for_error(exc: GeocoderError) -> int:
    """Map a geocoder error onto the HTTP status returned to the client."""
    if isinstance(exc, InvalidQueryError):
        return 400
    if isinstance(exc, QueueFullError):
        return 503
    if isinstance(exc, RequestCancelledError):
        return HTTP_CLIENT_CLOSED_REQUEST
    if isinstance(exc, QueueTimeoutError):
        return 504
    if isinstance(exc, ProviderError):
        return 502
    return 500


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``GeocoderError`` subclasses into JSON error responses.

    Validation failures answer ``{"message": ...}``; every other error
    answers an :class:`ErrorResponse` naming the exception class.  Stack
    traces stay in the server logs.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except GeocoderError as exc:
            status_code = status_for_error(exc)
            log = _logger.warning if status_code < 500 or status_code == 503 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )

            if isinstance(exc, InvalidQueryError):
                body = MessageResponse(message=exc.message).model_dump()
            else:
                body = ErrorResponse(error=type(exc).__name__, message=exc.message).model_dump()

            headers: dict[str, str] = {}
            if isinstance(exc, RateLimitError) and exc.retry_after is not None:
                headers["Retry-After"] = str(int(exc.retry_after))
            return JSONResponse(status_code=status_code, content=body, headers=headers)


# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach a minimal set of security headers to every response.

    The CSP allows the Swagger UI assets FastAPI serves ``/docs`` with.
    HSTS is only sent in production, where the service sits behind TLS.
    """

    def __init__(self, app: ASGIApp, production: bool = False) -> None:
        super().__init__(app)
        self._production = production

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = _CONTENT_SECURITY_POLICY
        if self._production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        return response


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory fixed-window rate limiter keyed by client address.

    Clients are identified by ``X-Forwarded-For`` when present, else by
    the socket peer.  State is per process; run one worker or put a shared
    limiter in front when scaling out.

    Parameters
    ----------
    max_requests:
        Requests allowed per client per window.
    window_seconds:
        Window length in seconds.
    """

    def __init__(self, app: ASGIApp, max_requests: int = 100, window_seconds: float = 60.0) -> None:
        super().__init__(app)
        self._max_requests = max_requests
        self._window = window_seconds
        # client -> (count, window reset time)
        self._hits: dict[str, tuple[int, float]] = {}

    def _client_key(self, request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset) in self._hits.items() if now > reset]
        for key in expired:
            del self._hits[key]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        now = time.monotonic()
        key = self._client_key(request)
        count, reset = self._hits.get(key, (0, 0.0))

        if now > reset:
            if len(self._hits) > 10_000:
                self._prune(now)
            self._hits[key] = (1, now + self._window)
            return await call_next(request)

        count += 1
        self._hits[key] = (count, reset)
        if count <= self._max_requests:
            return await call_next(request)

        retry_after = max(round(reset - now), 1)
        _logger.warning("rate_limited", client=key, count=count, retry_after=retry_after)
        body = RateLimitResponse(
            message=f"Rate limit exceeded. Try again after {retry_after} seconds.",
            retryAfter=retry_after,
        )
        return JSONResponse(
            status_code=429,
            content=body.model_dump(by_alias=True),
            headers={"Retry-After": str(retry_after)},
        )
