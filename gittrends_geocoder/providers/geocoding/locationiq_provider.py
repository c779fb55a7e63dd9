"""LocationIQ provider implementing IGeocoder.

LocationIQ exposes a Nominatim-compatible ``/search.php`` endpoint behind
an API key.  The adapter takes the first candidate and reports its
``importance`` (or, failing that, ``rank_search``) as confidence.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.utils.cancellation import CancellationToken
from gittrends_geocoder.utils.errors import ConfigurationError, ProviderError
from gittrends_geocoder.utils.http import fetch_json

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BASE_URL = "https://us1.locationiq.com/v1"


class LocationIQProvider(IGeocoder):
    """Geocoder backed by the LocationIQ search API.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    api_key:
        LocationIQ access token.  Never logged.
    base_url:
        API root, e.g. the EU endpoint ``https://eu1.locationiq.com/v1``.
    min_confidence:
        Candidates scoring below this are reported as not found.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        min_confidence: float = 0.0,
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 1.0,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                message="LocationIQ requires an API key",
                provider_name="locationiq",
            )
        self._client = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._min_confidence = min_confidence
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff
        logger.debug(
            "locationiq_provider_initialized",
            base_url=self._base_url,
            min_confidence=min_confidence,
        )

    def get_provider_name(self) -> str:
        return "locationiq"

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        try:
            data = await fetch_json(
                self._client,
                f"{self._base_url}/search.php",
                params={
                    "key": self._api_key,
                    "q": query,
                    "format": "json",
                    "addressdetails": 1,
                    "limit": 5,
                },
                provider_name=self.get_provider_name(),
                timeout=self._timeout,
                retries=self._retries,
                backoff=self._backoff,
            )
        except ProviderError as exc:
            # "Unable to geocode" comes back as HTTP 404.
            if exc.status_code != 404:
                raise
            logger.debug("locationiq_no_results", query=query, status=404)
            return None
        # Some plans answer it with HTTP 200 and an error object instead.
        if isinstance(data, dict) and "error" in data:
            logger.debug("locationiq_no_results", query=query, error=data["error"])
            return None
        if not isinstance(data, list):
            raise ProviderError(
                message=f"Unexpected response type: {type(data).__name__}",
                provider_name=self.get_provider_name(),
            )
        if not data:
            logger.debug("locationiq_no_results", query=query)
            return None

        candidate: dict[str, Any] = data[0]
        details: dict[str, Any] = candidate.get("address") or {}
        raw_confidence = candidate.get("importance")
        if raw_confidence is None:
            raw_confidence = candidate.get("rank_search", 0)
        try:
            confidence = float(raw_confidence)
        except (TypeError, ValueError):
            confidence = 0.0

        if self._min_confidence and confidence < self._min_confidence:
            logger.debug(
                "locationiq_below_threshold",
                query=query,
                confidence=confidence,
                min_confidence=self._min_confidence,
            )
            return None

        state = details.get("state") or details.get("county")
        city = details.get("city") or details.get("town") or details.get("village")
        address = Address(
            source=query,
            provider=self.get_provider_name(),
            name=", ".join(part for part in (details.get("country"), state, city) if part),
            type=candidate.get("type") or candidate.get("class"),
            confidence=confidence,
            country=details.get("country"),
            country_code=details.get("country_code"),
            state=state,
            city=city,
        )
        logger.debug(
            "locationiq_address_found",
            query=query,
            name=address.name,
            confidence=address.confidence,
        )
        return address
