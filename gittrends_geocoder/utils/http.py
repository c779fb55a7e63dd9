"""JSON GET helper with retry and exponential backoff.

Every geocoding adapter talks to its upstream through :func:`fetch_json`.
The helper issues a GET on an injected ``httpx.AsyncClient`` and retries
transient failures:

* network errors (connection reset, DNS, read timeout),
* HTTP 418 (Nominatim's "I'm a teapot" block page),
* HTTP 429 (rate limited),
* HTTP 5xx.

Retry *n* (0-based) sleeps ``backoff * 2**n`` seconds first.  HTTP 403 is
never retried: providers use it to signal a usage-policy block, so it is
raised immediately as :class:`RateLimitError`.  Any other non-2xx status
is a :class:`ProviderError`.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from gittrends_geocoder.utils.errors import ProviderError, RateLimitError
from gittrends_geocoder.utils.logging import get_logger

_DEFAULT_TIMEOUT = 10.0
_DEFAULT_RETRIES = 3
_DEFAULT_BACKOFF = 1.0
_RETRY_STATUSES = frozenset({418, 429})

_logger = get_logger(__name__)


def _retry_after(response: httpx.Response) -> float | None:
    """Parse a numeric ``Retry-After`` header; HTTP-date values are ignored."""
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return max(float(raw), 0.0)
    except ValueError:
        return None


def _is_retryable(status_code: int) -> bool:
    return status_code in _RETRY_STATUSES or status_code >= 500


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, Any] | None = None,
    provider_name: str | None = None,
    timeout: float = _DEFAULT_TIMEOUT,
    retries: int = _DEFAULT_RETRIES,
    backoff: float = _DEFAULT_BACKOFF,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET *url* and return the decoded JSON body.

    Parameters
    ----------
    client:
        Shared ``httpx.AsyncClient`` (connection pooling, injected in tests).
    url:
        Absolute endpoint URL.
    params:
        Query-string parameters.
    provider_name:
        Attached to raised errors and log events.
    timeout:
        Per-attempt timeout in seconds.
    retries:
        Number of retries after the first attempt.
    backoff:
        Base delay in seconds; retry *n* waits ``backoff * 2**n``.
    headers:
        Extra request headers (e.g. ``User-Agent``).

    Returns
    -------
    Any
        The parsed JSON document.

    Raises
    ------
    RateLimitError
        On HTTP 403, or HTTP 429 once retries are exhausted.
    ProviderError
        On any other failure after retries.
    """
    last_error: ProviderError | None = None

    attempts = max(retries, 0) + 1
    for attempt in range(attempts):
        if attempt > 0:
            delay = backoff * 2 ** (attempt - 1)
            _logger.debug(
                "http_retry",
                provider=provider_name,
                attempt=attempt,
                delay_s=delay,
                error=str(last_error),
            )
            await asyncio.sleep(delay)

        try:
            response = await client.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.HTTPError as exc:
            last_error = ProviderError(
                message=f"Request failed: {exc.__class__.__name__}: {exc}",
                provider_name=provider_name,
            )
            continue

        status = response.status_code
        if status == 403:
            _logger.warning("http_forbidden", provider=provider_name, url=url)
            raise RateLimitError(provider_name=provider_name, status_code=403)
        if status == 429:
            last_error = RateLimitError(
                provider_name=provider_name,
                retry_after=_retry_after(response),
                status_code=429,
            )
            continue
        if _is_retryable(status):
            last_error = ProviderError(
                message=f"HTTP {status} from upstream",
                provider_name=provider_name,
                status_code=status,
            )
            continue
        if status < 200 or status >= 300:
            raise ProviderError(
                message=f"HTTP {status} from upstream",
                provider_name=provider_name,
                status_code=status,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                message=f"Invalid JSON response: {exc}",
                provider_name=provider_name,
                status_code=status,
            ) from exc

    assert last_error is not None
    _logger.warning(
        "http_retries_exhausted",
        provider=provider_name,
        url=url,
        attempts=attempts,
        error=str(last_error),
    )
    raise last_error
