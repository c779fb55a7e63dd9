"""Geocoder FastAPI application entry point.

Wires provider adapters, pipeline decorators and routes together.  Loads
configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.

``build_geocoder`` is also used by the CLI ``search`` command, so the web
server and the command line resolve queries through the same pipeline:

    Cache(memory + SQLite)
      -> LoadBalancer | Fallback chain
           -> Throttler(OpenStreetMapProvider)
           -> Throttler(PhotonProvider)
           -> Throttler(LocationIQProvider)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from functools import reduce
from pathlib import Path
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from gittrends_geocoder import __version__
from gittrends_geocoder.api.middleware import (
    ErrorHandlingMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from gittrends_geocoder.api.routes import router as api_router
from gittrends_geocoder.config.loader import load_config
from gittrends_geocoder.config.settings import Settings
from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.pipeline.cache import Cache
from gittrends_geocoder.pipeline.fallback import Fallback
from gittrends_geocoder.pipeline.introspection import find_components
from gittrends_geocoder.pipeline.load_balancer import LoadBalancer
from gittrends_geocoder.pipeline.throttler import Throttler
from gittrends_geocoder.providers.cache.sqlite_cache import SQLiteCacheProvider
from gittrends_geocoder.providers.geocoding.locationiq_provider import LocationIQProvider
from gittrends_geocoder.providers.geocoding.openstreetmap_provider import OpenStreetMapProvider
from gittrends_geocoder.providers.geocoding.photon_provider import PhotonProvider
from gittrends_geocoder.utils.errors import ConfigurationError, NoProvidersError
from gittrends_geocoder.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_DEFAULT_USER_AGENT = f"gittrends-geocoder/{__version__}"

KNOWN_PROVIDERS = ("openstreetmap", "photon", "locationiq")


# ---------------------------------------------------------------------------
# Pipeline assembly
# ---------------------------------------------------------------------------


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared outbound client; adapters pass per-request timeouts on top."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        headers={"User-Agent": settings.osm_user_agent or _DEFAULT_USER_AGENT},
        follow_redirects=True,
    )


def _build_provider(
    name: str,
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> IGeocoder:
    """Construct one throttled provider adapter by name."""
    http_options: dict[str, Any] = {
        "timeout": settings.http_timeout,
        "retries": settings.http_retries,
    }
    if name == "openstreetmap":
        provider: IGeocoder = OpenStreetMapProvider(
            http_client=http_client,
            email=settings.osm_email or None,
            user_agent=settings.osm_user_agent or None,
            server=settings.osm_server,
            min_confidence=settings.osm_min_confidence,
            **http_options,
        )
        return Throttler(
            provider,
            concurrency=settings.osm_concurrency,
            interval_cap=settings.osm_rate_per_second or None,
            interval=1.0,
        )
    if name == "photon":
        provider = PhotonProvider(
            http_client=http_client,
            server=settings.photon_server,
            **http_options,
        )
        return Throttler(provider, concurrency=settings.photon_concurrency)
    if name == "locationiq":
        provider = LocationIQProvider(
            http_client=http_client,
            api_key=settings.locationiq_api_key,
            base_url=settings.locationiq_base_url,
            min_confidence=settings.locationiq_min_confidence,
            **http_options,
        )
        return Throttler(provider, concurrency=settings.locationiq_concurrency)
    raise ConfigurationError(message=f"Unknown geocoding provider: {name!r}")


def resolve_provider_order(settings: Settings, config: dict[str, Any]) -> list[str]:
    """Return the configured provider names that *settings* can actually run.

    Raises
    ------
    ConfigurationError
        When the configuration names a provider this package does not know.
    """
    enabled = settings.get_enabled_providers()
    order: list[str] = config.get("geocoder", {}).get("providers") or enabled
    resolved: list[str] = []
    for name in order:
        if name not in KNOWN_PROVIDERS:
            raise ConfigurationError(message=f"Unknown geocoding provider: {name!r}")
        if name not in enabled:
            _logger.info("provider_skipped", provider=name, reason="not configured")
            continue
        if name not in resolved:
            resolved.append(name)
    return resolved


def build_providers(
    settings: Settings,
    config: dict[str, Any],
    http_client: httpx.AsyncClient,
) -> list[IGeocoder]:
    """Build throttled providers in configured order, skipping unconfigured ones."""
    return [
        _build_provider(name, settings, http_client)
        for name in resolve_provider_order(settings, config)
    ]


def build_geocoder(
    settings: Settings,
    config: dict[str, Any],
    http_client: httpx.AsyncClient,
) -> IGeocoder:
    """Assemble the full geocoder pipeline.

    Parameters
    ----------
    settings:
        Environment settings (provider credentials, limits, cache sizing).
    config:
        Resolved configuration from :func:`load_config` (provider order and
        composition strategy).
    http_client:
        Shared outbound client; the caller owns and closes it.

    Raises
    ------
    NoProvidersError
        When no configured provider is usable.
    ConfigurationError
        On an unknown provider name or strategy.
    """
    providers = build_providers(settings, config, http_client)
    if not providers:
        raise NoProvidersError()

    strategy = config.get("geocoder", {}).get("strategy", "loadbalancer")
    geocoder: IGeocoder
    if strategy == "loadbalancer":
        geocoder = LoadBalancer(
            providers,
            max_queue_size=settings.loadbalancer_max_queue_size,
            timeout=settings.loadbalancer_queue_timeout or None,
        )
    elif strategy == "fallback":
        geocoder = reduce(lambda chain, peer: Fallback(chain, peer), providers[1:], providers[0])
    else:
        raise ConfigurationError(message=f"Unknown geocoder strategy: {strategy!r}")

    if settings.cache_size > 0:
        secondary = None
        if settings.cache_dir:
            filename = config.get("cache", {}).get("filename", "geocoder-cache.db")
            secondary = SQLiteCacheProvider(
                Path(settings.cache_dir).expanduser() / filename,
                ttl=settings.cache_ttl or None,
            )
        geocoder = Cache(
            geocoder,
            size=settings.cache_size,
            ttl=settings.cache_ttl or None,
            secondary=secondary,
        )

    _logger.info(
        "geocoder_built",
        providers=[p.get_provider_name() for p in providers],
        strategy=strategy,
        cache_size=settings.cache_size,
    )
    return geocoder


async def close_geocoder(geocoder: IGeocoder) -> None:
    """Flush and close every cache in the stack."""
    for cache in find_components(geocoder, Cache):
        await cache.aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build the pipeline on startup (unless injected) and close it on shutdown."""
    state = application.state
    settings: Settings = state.settings
    http_client: httpx.AsyncClient | None = None

    if state.geocoder is None:
        config = state.config if state.config is not None else load_config(settings=settings)
        http_client = build_http_client(settings)
        try:
            state.geocoder = build_geocoder(settings, config, http_client)
        except Exception:
            await http_client.aclose()
            raise
        state.provider_names = resolve_provider_order(settings, config)
        state.strategy = config.get("geocoder", {}).get("strategy")

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        providers=state.provider_names,
    )

    yield

    if http_client is not None:
        await close_geocoder(state.geocoder)
        await http_client.aclose()
        _logger.info("app_shutdown", message="Cache flushed and HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    geocoder: IGeocoder | None = None,
    settings: Settings | None = None,
    config: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    geocoder:
        A ready-made geocoder (tests).  It is used as-is and never closed by
        the app.  When omitted, the lifespan builds one from *settings*.
    settings:
        Defaults to ``Settings()`` read from the environment.
    config:
        Resolved configuration; loaded from ``config/config.yaml`` when the
        lifespan needs it.
    """
    settings = settings or Settings()
    configure_logging(
        log_level=settings.log_level,
        json_output=settings.is_production,
    )

    application = FastAPI(
        title="GitTrends Geocoder",
        version=__version__,
        description="Geocode free-form locations (e.g. GitHub user profiles).",
        lifespan=_lifespan,
    )
    application.state.settings = settings
    application.state.config = config
    application.state.geocoder = geocoder
    application.state.provider_names = [geocoder.get_provider_name()] if geocoder else []
    application.state.strategy = None

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(SecurityHeadersMiddleware, production=settings.is_production)
    if settings.rate_limit_max > 0:
        application.add_middleware(
            RateLimitMiddleware,
            max_requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window,
        )
    application.add_middleware(RequestLoggingMiddleware)

    # -- API routes --
    application.include_router(api_router)

    return application


# ---------------------------------------------------------------------------
# Direct entry point (the CLI's ``serve`` command is the usual way in)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    _settings = Settings()
    uvicorn.run(
        create_app(settings=_settings),
        host=_settings.app_host,
        port=_settings.app_port,
    )
