"""Read-only monitoring snapshots.

Each pipeline component exposes ``get_stats()`` returning one of these
frozen models.  They are built on demand from live counters, so a snapshot
never changes after it is returned; the ``/stats`` endpoint serialises them
directly.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, computed_field


class QueueStats(BaseModel):
    """Counters for a single :class:`~gittrends_geocoder.utils.concurrency.TaskQueue`."""

    model_config = ConfigDict(frozen=True)

    name: str
    # Waiting for a concurrency slot.
    size: int = 0
    # Currently running.
    pending: int = 0
    completed: int = 0
    failed: int = 0
    timeouts: int = 0


class ProviderLoad(BaseModel):
    """Queue occupancy of one LoadBalancer slot."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    queue_size: int = 0
    pending: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def load(self) -> int:
        return self.queue_size + self.pending


class LoadBalancerStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_requests: int = 0
    timeouts: int = 0
    queue_full: int = 0
    providers: list[ProviderLoad] = Field(default_factory=list)


class CacheStats(BaseModel):
    """Hit/miss counters for the Cache decorator.

    ``negative_hits`` counts hits on a cached "not found" result and is a
    subset of ``hits``.  ``deduplicated`` counts callers that joined an
    in-flight upstream request instead of starting their own.
    """

    model_config = ConfigDict(frozen=True)

    hits: int = 0
    negative_hits: int = 0
    misses: int = 0
    deduplicated: int = 0
    upstream_calls: int = 0
    storage_errors: int = 0
    # In-flight upstream requests right now.
    pending: int = 0
