"""OpenStreetMap Nominatim provider implementing IGeocoder.

Queries the Nominatim ``/search`` endpoint with address details and keeps
the most important ``place``/``boundary`` result.  The public server at
nominatim.openstreetmap.org requires clients to identify themselves
(e-mail and User-Agent) and to stay under one request per second; this
adapter does not throttle itself, so ``main.build_geocoder`` wraps it in a
Throttler configured from ``OSM_CONCURRENCY`` / ``OSM_RATE_PER_SECOND``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.utils.cancellation import CancellationToken
from gittrends_geocoder.utils.errors import ProviderError
from gittrends_geocoder.utils.http import fetch_json

logger = structlog.get_logger(logger_name=__name__)

PUBLIC_SERVER = "https://nominatim.openstreetmap.org"
_ACCEPTED_CLASSES = frozenset({"place", "boundary"})


class OpenStreetMapProvider(IGeocoder):
    """Geocoder backed by a Nominatim server.

    Parameters
    ----------
    http_client:
        Shared ``httpx.AsyncClient``.
    email:
        Contact address sent with every request (required by the public
        server's usage policy).
    user_agent:
        ``User-Agent`` header identifying the application.
    server:
        Base URL of the Nominatim instance.
    min_confidence:
        Results with a lower ``importance`` are discarded.
    timeout, retries, backoff:
        Passed through to :func:`~gittrends_geocoder.utils.http.fetch_json`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        email: str | None = None,
        user_agent: str | None = None,
        server: str = PUBLIC_SERVER,
        min_confidence: float = 0.0,
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self._client = http_client
        self._email = email
        self._user_agent = user_agent
        self._server = server.rstrip("/")
        self._min_confidence = min_confidence
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff
        logger.debug(
            "openstreetmap_provider_initialized",
            server=self._server,
            min_confidence=min_confidence,
        )

    def get_provider_name(self) -> str:
        return "openstreetmap"

    # ------------------------------------------------------------------
    # IGeocoder implementation
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        params: dict[str, Any] = {
            "q": query,
            "addressdetails": 1,
            "limit": 5,
            "format": "json",
            "accept-language": "en-US",
        }
        if self._email:
            params["email"] = self._email
        headers = {"User-Agent": self._user_agent} if self._user_agent else None

        data = await fetch_json(
            self._client,
            f"{self._server}/search",
            params=params,
            provider_name=self.get_provider_name(),
            timeout=self._timeout,
            retries=self._retries,
            backoff=self._backoff,
            headers=headers,
        )
        if not isinstance(data, list):
            raise ProviderError(
                message=f"Unexpected response type: {type(data).__name__}",
                provider_name=self.get_provider_name(),
            )
        if not data:
            logger.debug("openstreetmap_no_results", query=query)
            return None

        location = self._best_match(data)
        if location is None or not location.get("address"):
            logger.debug(
                "openstreetmap_results_filtered",
                query=query,
                candidates=len(data),
                min_confidence=self._min_confidence,
            )
            return None

        details = location["address"]
        name = ", ".join(
            part
            for part in (details.get("country"), details.get("state"), details.get("city"))
            if part
        )
        address = Address(
            source=query,
            provider=self.get_provider_name(),
            name=name,
            type=location.get("type"),
            confidence=location.get("importance"),
            country=details.get("country"),
            country_code=details.get("country_code"),
            state=details.get("state"),
            city=details.get("city"),
        )
        logger.debug(
            "openstreetmap_address_found",
            query=query,
            name=address.name,
            confidence=address.confidence,
        )
        return address

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _best_match(self, results: list[dict[str, Any]]) -> dict[str, Any] | None:
        """Return the highest-importance place/boundary result, if any."""
        best: dict[str, Any] | None = None
        for result in results:
            importance = result.get("importance")
            if not importance or importance < self._min_confidence:
                continue
            if result.get("class") not in _ACCEPTED_CLASSES:
                continue
            if best is None or importance > best["importance"]:
                best = result
        return best
