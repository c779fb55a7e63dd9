"""The resolved location record returned by every geocoder.

An :class:`Address` is produced by a provider adapter and then travels
unchanged through every decorator in the pipeline (Cache, Throttler,
Fallback, LoadBalancer).  The model is frozen, so the object handed out of
the memory cache is the very object that was stored there and nothing
downstream can mutate it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Address(BaseModel):
    """A standardized location as reported by one geocoding provider.

    ``name`` is the provider-independent display form, e.g.
    ``"Brazil"`` or ``"Brazil, São Paulo, São Paulo"``.  ``confidence`` is
    always present; providers that do not score their results report ``0``.
    """

    model_config = ConfigDict(frozen=True)

    # The query string the record was resolved from.
    source: str
    name: str
    # Which adapter produced the record ("openstreetmap", "photon", ...).
    provider: str | None = None
    # Provider-specific place type ("country", "city", "administrative", ...).
    type: str | None = None
    confidence: float = Field(default=0.0)

    country: str | None = None
    # ISO 3166-1 alpha-2, upper-cased ("BR").
    country_code: str | None = None
    state: str | None = None
    city: str | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: object) -> float:
        if value is None or value == "":
            return 0.0
        return float(value)  # type: ignore[arg-type]

    @field_validator("country_code")
    @classmethod
    def _upper_country_code(cls, value: str | None) -> str | None:
        return value.upper() if value else value
