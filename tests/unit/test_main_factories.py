"""Unit tests for the pipeline factories and app factory in main.py.

No network calls are made: the pipeline is assembled but never searched,
except through injected fakes.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from conftest import FakeGeocoder, make_settings
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gittrends_geocoder.main import (
    build_geocoder,
    build_http_client,
    close_geocoder,
    create_app,
    resolve_provider_order,
)
from gittrends_geocoder.pipeline.cache import Cache
from gittrends_geocoder.pipeline.fallback import Fallback
from gittrends_geocoder.pipeline.introspection import find_components, iter_components
from gittrends_geocoder.pipeline.load_balancer import LoadBalancer
from gittrends_geocoder.pipeline.throttler import Throttler
from gittrends_geocoder.providers.cache.sqlite_cache import SQLiteCacheProvider
from gittrends_geocoder.providers.geocoding.locationiq_provider import LocationIQProvider
from gittrends_geocoder.providers.geocoding.openstreetmap_provider import OpenStreetMapProvider
from gittrends_geocoder.providers.geocoding.photon_provider import PhotonProvider
from gittrends_geocoder.utils.errors import ConfigurationError, NoProvidersError

_ALL = {"geocoder": {"providers": ["openstreetmap", "photon", "locationiq"], "strategy": "loadbalancer"}}


def _config(strategy: str = "loadbalancer", providers: list[str] | None = None) -> dict:
    return {
        "geocoder": {
            "providers": providers or ["openstreetmap", "photon", "locationiq"],
            "strategy": strategy,
        },
        "cache": {"filename": "geocoder-cache.db"},
    }


# ======================================================================
# resolve_provider_order
# ======================================================================


class TestResolveProviderOrder:
    def test_skips_unconfigured_providers(self) -> None:
        assert resolve_provider_order(make_settings(), _ALL) == ["openstreetmap", "photon"]

    def test_keeps_configured_order_and_dedupes(self) -> None:
        settings = make_settings(locationiq_api_key="pk.test")
        config = _config(providers=["locationiq", "photon", "locationiq"])
        assert resolve_provider_order(settings, config) == ["locationiq", "photon"]

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError, match="mapquest"):
            resolve_provider_order(make_settings(), _config(providers=["mapquest"]))


# ======================================================================
# build_geocoder
# ======================================================================


class TestBuildGeocoder:
    @pytest.fixture()
    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient()

    def test_loadbalancer_over_throttled_providers(self, http_client: httpx.AsyncClient) -> None:
        settings = make_settings(locationiq_api_key="pk.test")
        geocoder = build_geocoder(settings, _config(), http_client)

        assert isinstance(geocoder, LoadBalancer)
        assert all(isinstance(p, Throttler) for p in geocoder.providers)
        inner = [p.geocoder for p in geocoder.providers]  # type: ignore[attr-defined]
        assert [type(p) for p in inner] == [
            OpenStreetMapProvider,
            PhotonProvider,
            LocationIQProvider,
        ]

    def test_fallback_strategy_folds_in_order(self, http_client: httpx.AsyncClient) -> None:
        geocoder = build_geocoder(make_settings(), _config("fallback"), http_client)
        assert isinstance(geocoder, Fallback)
        assert geocoder.primary.get_provider_name() == "openstreetmap"
        assert geocoder.secondary.get_provider_name() == "photon"

    def test_single_provider_fallback_is_the_provider(self, http_client: httpx.AsyncClient) -> None:
        settings = make_settings(osm_server="")
        geocoder = build_geocoder(settings, _config("fallback"), http_client)
        assert isinstance(geocoder, Throttler)
        assert geocoder.get_provider_name() == "photon"

    def test_unknown_strategy(self, http_client: httpx.AsyncClient) -> None:
        with pytest.raises(ConfigurationError):
            build_geocoder(make_settings(), _config("roundrobin"), http_client)

    def test_no_providers(self, http_client: httpx.AsyncClient) -> None:
        settings = make_settings(osm_server="", photon_server="")
        with pytest.raises(NoProvidersError):
            build_geocoder(settings, _config(), http_client)

    def test_cache_wraps_pipeline(self, http_client: httpx.AsyncClient, tmp_path: Path) -> None:
        settings = make_settings(cache_size=10, cache_dir=str(tmp_path))
        geocoder = build_geocoder(settings, _config(), http_client)

        assert isinstance(geocoder, Cache)
        assert isinstance(geocoder.geocoder, LoadBalancer)
        durable = geocoder._secondary  # noqa: SLF001
        assert isinstance(durable, SQLiteCacheProvider)
        assert durable.db_path == tmp_path / "geocoder-cache.db"

    def test_cache_without_durable_tier(self, http_client: httpx.AsyncClient) -> None:
        geocoder = build_geocoder(make_settings(cache_size=10, cache_dir=""), _config(), http_client)
        assert isinstance(geocoder, Cache)
        assert geocoder._secondary is None  # noqa: SLF001

    def test_osm_rate_cap_can_be_disabled(self, http_client: httpx.AsyncClient) -> None:
        settings = make_settings(osm_rate_per_second=0, osm_concurrency=3)
        geocoder = build_geocoder(settings, _config(providers=["openstreetmap"]), http_client)
        assert isinstance(geocoder, LoadBalancer)
        throttler = geocoder.providers[0]
        assert isinstance(throttler, Throttler)
        assert throttler._queue._interval_cap is None  # noqa: SLF001

    def test_introspection_finds_every_component(self, http_client: httpx.AsyncClient) -> None:
        settings = make_settings(cache_size=10, cache_dir="")
        geocoder = build_geocoder(settings, _config(), http_client)
        components = list(iter_components(geocoder))

        assert components[0] is geocoder
        assert len(find_components(geocoder, Cache)) == 1
        assert len(find_components(geocoder, LoadBalancer)) == 1
        names = [t.get_provider_name() for t in find_components(geocoder, Throttler)]
        assert names == ["openstreetmap", "photon"]

    @pytest.mark.asyncio
    async def test_close_geocoder_closes_caches(self) -> None:
        cache = Cache(Fallback(FakeGeocoder("a"), FakeGeocoder("b")))
        await cache.search("x")
        await close_geocoder(cache)
        assert cache.get_stats().pending == 0


# ======================================================================
# HTTP client / create_app
# ======================================================================


class TestCreateApp:
    @pytest.mark.asyncio
    async def test_http_client_identifies_itself(self) -> None:
        async with build_http_client(make_settings(osm_user_agent="gittrends-tests")) as client:
            assert client.headers["User-Agent"] == "gittrends-tests"
        async with build_http_client(make_settings()) as client:
            assert client.headers["User-Agent"].startswith("gittrends-geocoder/")

    def test_injected_geocoder_is_used(self) -> None:
        fake = FakeGeocoder("injected")
        app = create_app(geocoder=fake, settings=make_settings())
        assert isinstance(app, FastAPI)
        assert app.state.geocoder is fake
        assert app.state.provider_names == ["injected"]

    def test_lifespan_builds_pipeline(self) -> None:
        app = create_app(settings=make_settings(), config=_config())
        with TestClient(app) as client:
            assert isinstance(app.state.geocoder, LoadBalancer)
            body = client.get("/health").json()
        assert body["providers"] == ["openstreetmap", "photon"]
        assert body["strategy"] == "loadbalancer"

    def test_lifespan_fails_without_providers(self) -> None:
        settings = make_settings(osm_server="", photon_server="")
        app = create_app(settings=settings, config=_config())
        with pytest.raises(NoProvidersError):
            with TestClient(app):
                pass
