"""Custom exception hierarchy for the geocoder.

All application exceptions inherit from :class:`GeocoderError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openstreetmap", "photon", "sqlite-cache") caused
the failure.

    GeocoderError  (base -- catch-all for any geocoder error)
    +-- RequestCancelledError  (caller's cancellation token fired)
    +-- ProviderError          (upstream transport / HTTP / parse failure)
    |   +-- RateLimitError     (provider answered 403 or 429)
    +-- QueueFullError         (admission rejected, provider queue saturated)
    +-- QueueTimeoutError      (queued work exceeded its time budget)
    +-- StorageError           (cache backend read/write failure)
    +-- NoProvidersError       (LoadBalancer built with an empty list)
    +-- ConfigurationError     (startup / missing config)
    +-- InvalidQueryError      (front-door query validation)

"Not found" is deliberately absent: a provider that finds nothing returns
``None``, which is cached as a negative result and never raised.
"""

from __future__ import annotations

from typing import Any


class GeocoderError(Exception):
    """Base exception for all geocoder errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[photon] HTTP 502 from upstream``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Request lifecycle errors
# ---------------------------------------------------------------------------

class RequestCancelledError(GeocoderError):
    """Raised to a caller whose own cancellation token fired.

    Only the cancelling caller sees this error; other callers sharing a
    deduplicated upstream request keep waiting for the real outcome.
    """

    def __init__(self, query: str | None = None, reason: str | None = None) -> None:
        self.query = query
        self.reason = reason
        message = "Geocoding request cancelled"
        if query:
            message += f" for query: {query}"
        if reason:
            message += f" ({reason})"
        super().__init__(message=message)


class QueueFullError(GeocoderError):
    """Raised when a provider queue has reached its admission limit.

    This is a backpressure signal: it is always surfaced to the caller
    and never retried internally.
    """

    def __init__(self, queue_size: int, provider_name: str | None = None) -> None:
        self.queue_size = queue_size
        super().__init__(
            message=f"Queue is full: {queue_size} items",
            provider_name=provider_name,
        )


class QueueTimeoutError(GeocoderError):
    """Raised when queued work does not finish within the queue's timeout."""

    def __init__(self, timeout: float, provider_name: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            message=f"Request exceeded queue timeout of {timeout:g}s",
            provider_name=provider_name,
        )


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderError(GeocoderError):
    """Raised when a geocoding provider fails (transport, HTTP status, parsing).

    :class:`~gittrends_geocoder.pipeline.fallback.Fallback` catches this to
    try the next provider in the chain.
    """

    def __init__(
        self,
        message: str = "Geocoding provider failed",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderError):
    """Raised when a provider signals a rate limit or usage-policy block.

    Both HTTP 429 and HTTP 403 land here so callers can back off instead
    of mistaking the answer for "not found".
    """

    def __init__(
        self,
        provider_name: str | None = None,
        retry_after: float | None = None,
        status_code: int | None = 429,
    ) -> None:
        self.retry_after = retry_after
        message = "Rate limit exceeded"
        if retry_after is not None:
            message += f" (retry after {retry_after:g}s)"
        super().__init__(message=message, provider_name=provider_name, status_code=status_code)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StorageError(GeocoderError):
    """Raised by cache backends on read/write failure.

    The Cache decorator absorbs these: caching is best-effort.
    """

    def __init__(
        self,
        operation: str,
        provider_name: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.cause = cause
        message = f"Cache {operation} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration / validation errors
# ---------------------------------------------------------------------------

class NoProvidersError(GeocoderError):
    """Raised when a LoadBalancer is constructed without any provider."""

    def __init__(self) -> None:
        super().__init__(message="No geocoder providers configured")


class ConfigurationError(GeocoderError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidQueryError(GeocoderError):
    """Raised when a search query fails front-door validation."""

    def __init__(self, field: str, value: Any, constraint: str) -> None:
        self.field = field
        self.value = value
        self.constraint = constraint
        super().__init__(message=f"{field} {constraint}")
