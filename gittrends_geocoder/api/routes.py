"""FastAPI routes for the geocoder service.

Endpoint        Method  Description
------------------------------------------------------------------------
/search?q=      GET     Resolve a free-form location into an Address
/stats          GET     Cache, load balancer and queue counters
/health         GET     Liveness, version and configured providers
/               GET     Redirect to the interactive docs

Dependencies are resolved from ``app.state`` (populated by ``main.create_app``
or its lifespan) via FastAPI's ``Depends`` using the ``Annotated`` pattern.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from gittrends_geocoder import __version__
from gittrends_geocoder.api.schemas import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    StatsResponse,
)
from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.address import Address
from gittrends_geocoder.pipeline.cache import Cache
from gittrends_geocoder.pipeline.introspection import find_components
from gittrends_geocoder.pipeline.load_balancer import LoadBalancer
from gittrends_geocoder.pipeline.throttler import Throttler
from gittrends_geocoder.utils.cancellation import CancellationToken
from gittrends_geocoder.utils.logging import get_logger
from gittrends_geocoder.utils.query import normalize_query

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter()

_DISCONNECT_POLL_INTERVAL = 0.25


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_geocoder(request: Request) -> IGeocoder:
    return request.app.state.geocoder


GeocoderDep = Annotated[IGeocoder, Depends(_get_geocoder)]


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Cancel *token* once the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            token.cancel("client disconnected")
            return
        await asyncio.sleep(_DISCONNECT_POLL_INTERVAL)


def collect_stats(geocoder: IGeocoder) -> StatsResponse:
    """Snapshot the counters of every monitored component in *geocoder*."""
    caches = find_components(geocoder, Cache)
    balancers = find_components(geocoder, LoadBalancer)
    return StatsResponse(
        cache=caches[0].get_stats() if caches else None,
        loadbalancer=balancers[0].get_stats() if balancers else None,
        queues=[t.get_stats() for t in find_components(geocoder, Throttler)],
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/", include_in_schema=False)
async def root() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@router.get(
    "/search",
    response_model=Address,
    summary="Geocode an address",
    tags=["Geocoder"],
    responses={
        400: {"model": MessageResponse, "description": "Invalid query"},
        404: {"model": MessageResponse, "description": "Address not found"},
        502: {"model": ErrorResponse, "description": "Upstream provider failed"},
        503: {"model": ErrorResponse, "description": "Provider queues are full"},
        504: {"model": ErrorResponse, "description": "Request exceeded its time budget"},
    },
)
async def search(
    request: Request,
    geocoder: GeocoderDep,
    q: Annotated[str, Query(description="The address to geocode")] = "",
) -> Any:
    """Resolve *q* into a standardized address."""
    query = normalize_query(q)

    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        address = await geocoder.search(query, cancellation=token)
    finally:
        watcher.cancel()

    if address is None:
        _logger.debug("address_not_found", query=query)
        return JSONResponse(
            status_code=404,
            content=MessageResponse(message="Address not found").model_dump(),
        )
    return address


@router.get("/stats", response_model=StatsResponse, summary="Pipeline counters", tags=["Monitoring"])
async def stats(geocoder: GeocoderDep) -> StatsResponse:
    return collect_stats(geocoder)


@router.get("/health", response_model=HealthResponse, summary="Health check", tags=["Monitoring"])
async def health(request: Request) -> HealthResponse:
    """Return service health, version and configured providers."""
    return HealthResponse(
        status="ok",
        version=__version__,
        providers=list(getattr(request.app.state, "provider_names", [])),
        strategy=getattr(request.app.state, "strategy", None),
    )
