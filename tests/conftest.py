"""Shared pytest fixtures for the geocoder test suite."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from gittrends_geocoder.config.settings import Settings
from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.utils.cancellation import CancellationToken

# ---------------------------------------------------------------------------
# Fake geocoders
# ---------------------------------------------------------------------------


class FakeGeocoder(IGeocoder):
    """Scriptable in-memory geocoder.

    ``results`` maps queries to an Address, ``None`` or an exception
    instance to raise.  Unknown queries resolve to ``None``.  When ``gate``
    is set, every call blocks on it, which lets tests hold requests in
    flight.
    """

    def __init__(
        self,
        name: str = "fake",
        results: dict[str, Any] | None = None,
        gate: asyncio.Event | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.results = results or {}
        self.gate = gate
        self.delay = delay
        self.calls: list[str] = []
        self.tokens: list[CancellationToken | None] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def get_provider_name(self) -> str:
        return self.name

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        self.calls.append(query)
        self.tokens.append(cancellation)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.results.get(query)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


def make_address(query: str = "brazil", **overrides: Any) -> Address:
    defaults: dict[str, Any] = {
        "source": query,
        "provider": "fake",
        "name": "Brazil",
        "type": "country",
        "confidence": 0.9,
        "country": "Brazil",
        "country_code": "BR",
    }
    defaults.update(overrides)
    return Address(**defaults)


def make_settings(**overrides: Any) -> Settings:
    """Build Settings with test-safe defaults and optional overrides.

    Caching and the durable tier are off and OSM is pointed at a private
    server so no usage-policy validation or real I/O gets in the way.
    """
    defaults: dict[str, Any] = {
        "app_env": "test",
        "cache_size": 0,
        "cache_dir": "",
        "osm_server": "http://nominatim.test",
        "osm_email": "",
        "osm_user_agent": "",
        "photon_server": "http://photon.test",
        "locationiq_api_key": "",
        "rate_limit_max": 0,
        "http_retries": 0,
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def brazil() -> Address:
    return make_address()


@pytest.fixture
def fake_geocoder(brazil: Address) -> FakeGeocoder:
    return FakeGeocoder(results={"brazil": brazil})
