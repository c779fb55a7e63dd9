"""Photon (komoot) provider implementing IGeocoder.

Photon is a search-as-you-type geocoder built on OpenStreetMap data.  The
adapter restricts results to administrative layers (district up to country)
tagged ``place`` or ``boundary`` and takes the first feature.  Photon does
not score its results, so every address is reported with confidence 0.
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

PUBLIC_SERVER = "https://photon.komoot.io"
_LAYERS = ("district", "city", "county", "state", "country")
_OSM_TAGS = ("place", "boundary")


class PhotonProvider(IGeocoder):
    """Geocoder backed by a Photon server."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        server: str = PUBLIC_SERVER,
        timeout: float = 10.0,
        retries: int = 3,
        backoff: float = 1.0,
    ) -> None:
        self._client = http_client
        self._server = server.rstrip("/")
        self._timeout = timeout
        self._retries = retries
        self._backoff = backoff

    def get_provider_name(self) -> str:
        return "photon"

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        # Repeated keys: httpx encodes list values as layer=a&layer=b.
        params: dict[str, Any] = {
            "q": query,
            "layer": list(_LAYERS),
            "osm_tag": list(_OSM_TAGS),
            "lang": "en",
        }
        data = await fetch_json(
            self._client,
            f"{self._server}/api/",
            params=params,
            provider_name=self.get_provider_name(),
            timeout=self._timeout,
            retries=self._retries,
            backoff=self._backoff,
        )
        if not isinstance(data, dict):
            raise ProviderError(
                message=f"Unexpected response type: {type(data).__name__}",
                provider_name=self.get_provider_name(),
            )

        features = data.get("features") or []
        if not features:
            logger.debug("photon_no_results", query=query)
            return None

        props: dict[str, Any] = features[0].get("properties") or {}
        country = props.get("country")
        state = props.get("state")
        name = (
            props.get("name")
            or ", ".join(part for part in (country, state) if part)
            or country
            or ""
        )
        address = Address(
            source=query,
            provider=self.get_provider_name(),
            name=name,
            type=props.get("osm_value"),
            confidence=0,
            country=country,
            country_code=props.get("countrycode"),
            state=state,
            city=props.get("name") if props.get("type") == "city" else None,
        )
        logger.debug("photon_address_found", query=query, name=address.name)
        return address
