"""Geocoder HTTP API -- routes, schemas, and middleware."""

from gittrends_geocoder.api.middleware import (
    ErrorHandlingMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from gittrends_geocoder.api.routes import router
from gittrends_geocoder.api.schemas import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    RateLimitResponse,
    StatsResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "RateLimitResponse",
    "StatsResponse",
]
