"""Domain models: the Address record and monitoring snapshots."""

from __future__ import annotations

from gittrends_geocoder.models.address import Address
from gittrends_geocoder.models.stats import (
    CacheStats,
    LoadBalancerStats,
    ProviderLoad,
    QueueStats,
)

__all__ = [
    "Address",
    "CacheStats",
    "LoadBalancerStats",
    "ProviderLoad",
    "QueueStats",
]
