"""Pydantic response schemas for the geocoder API.

The 200 body of ``/search`` is the domain :class:`Address` itself; the
models here cover everything else the API returns.  FastAPI uses them for
serialisation and to generate the OpenAPI document served at ``/docs``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from gittrends_geocoder.models.stats import CacheStats, LoadBalancerStats, QueueStats


class MessageResponse(BaseModel):
    """Plain message body, e.g. ``{"message": "Address not found"}``."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    message: str


class RateLimitResponse(BaseModel):
    """Body returned with HTTP 429 by the inbound rate limiter."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(default=429, alias="statusCode")
    error: str = "Too Many Requests"
    message: str
    retry_after: int = Field(alias="retryAfter")


class HealthResponse(BaseModel):
    status: str
    version: str
    providers: list[str] = Field(default_factory=list)
    strategy: str | None = None


class StatsResponse(BaseModel):
    """Live monitoring snapshot of the geocoder pipeline.

    Sections are ``None``/empty when the corresponding component is not
    part of the configured pipeline (e.g. caching disabled).
    """

    cache: CacheStats | None = None
    loadbalancer: LoadBalancerStats | None = None
    queues: list[QueueStats] = Field(default_factory=list)
