"""Primary/secondary failover between two geocoders."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.pipeline.base import GeocoderDecorator
from gittrends_geocoder.utils.errors import RequestCancelledError
from gittrends_geocoder.utils.logging import get_logger

if TYPE_CHECKING:
    from gittrends_geocoder.models.address import Address
    from gittrends_geocoder.utils.cancellation import CancellationToken

_logger: structlog.BoundLogger = get_logger(__name__)


class Fallback(GeocoderDecorator):
    """Ask *primary* first and *secondary* when it finds nothing or fails.

    The secondary is called at most once per search and its outcome, result
    or exception, is final.  A cancelled caller is not retried against the
    secondary: the same token would reject it anyway.

    Chains are built by folding, e.g.
    ``reduce(Fallback, [photon, locationiq], osm)`` tries OSM, then Photon,
    then LocationIQ.
    """

    def __init__(self, primary: IGeocoder, secondary: IGeocoder) -> None:
        super().__init__(primary)
        self._secondary = secondary

    @property
    def primary(self) -> IGeocoder:
        return self._geocoder

    @property
    def secondary(self) -> IGeocoder:
        return self._secondary

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        try:
            result = await self._geocoder.search(query, cancellation)
        except RequestCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            _logger.info(
                "fallback_used",
                query=query,
                primary=self._geocoder.get_provider_name(),
                secondary=self._secondary.get_provider_name(),
                reason="error",
                error=str(exc),
            )
            return await self._secondary.search(query, cancellation)

        if result is not None:
            return result

        _logger.debug(
            "fallback_used",
            query=query,
            primary=self._geocoder.get_provider_name(),
            secondary=self._secondary.get_provider_name(),
            reason="not_found",
        )
        return await self._secondary.search(query, cancellation)

    def __repr__(self) -> str:
        return f"Fallback({self._geocoder!r}, {self._secondary!r})"
