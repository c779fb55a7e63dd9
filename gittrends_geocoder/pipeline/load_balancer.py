"""Least-loaded routing across several geocoding providers.

Every provider gets its own :class:`TaskQueue` and is wrapped in a
Fallback chain over all of its peers, so a request routed to provider *i*
still ends up answered by another provider when *i* finds nothing or
fails.  Routing picks the queue with the lowest ``size + pending``; ties
go to the provider listed first.

Admission is hard: when even the least-loaded queue holds
``max_queue_size`` requests, the call fails immediately with
:class:`QueueFullError` instead of growing the backlog.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import reduce
from typing import TYPE_CHECKING

import structlog

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.stats import LoadBalancerStats, ProviderLoad
from gittrends_geocoder.pipeline.fallback import Fallback
from gittrends_geocoder.utils.concurrency import TaskQueue
from gittrends_geocoder.utils.errors import (
    NoProvidersError,
    QueueFullError,
    QueueTimeoutError,
)
from gittrends_geocoder.utils.logging import get_logger

if TYPE_CHECKING:
    from gittrends_geocoder.models.address import Address
    from gittrends_geocoder.utils.cancellation import CancellationToken

_logger: structlog.BoundLogger = get_logger(__name__)


class LoadBalancer(IGeocoder):
    """Route each search to the least-loaded provider.

    Parameters
    ----------
    geocoders:
        Providers in priority order.  Must not be empty.
    max_queue_size:
        Admission limit on the selected queue's ``size + pending``.
    timeout:
        Per-request budget in seconds for each queue; ``None`` or ``0``
        disables it.
    concurrency:
        Optional cap on simultaneous requests per provider queue.
    """

    def __init__(
        self,
        geocoders: Sequence[IGeocoder],
        max_queue_size: int = 1000,
        timeout: float | None = 30.0,
        concurrency: int | None = None,
    ) -> None:
        if not geocoders:
            raise NoProvidersError()
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be a positive integer")

        self._providers: list[IGeocoder] = list(geocoders)
        self._max_queue_size = max_queue_size
        self._chains: list[IGeocoder] = []
        self._queues: list[TaskQueue] = []

        for index, provider in enumerate(self._providers):
            peers = self._providers[:index] + self._providers[index + 1 :]
            self._chains.append(
                reduce(lambda chain, peer: Fallback(chain, peer), peers, provider)
            )
            self._queues.append(
                TaskQueue(
                    concurrency=concurrency,
                    timeout=timeout or None,
                    name=provider.get_provider_name(),
                )
            )

        self._total_requests = 0
        self._timeouts = 0
        self._queue_full = 0

    @property
    def providers(self) -> list[IGeocoder]:
        return list(self._providers)

    def get_provider_name(self) -> str:
        return "loadbalancer"

    def _load(self, index: int) -> int:
        queue = self._queues[index]
        return queue.size + queue.pending

    def _select(self) -> int:
        # min() keeps the first minimum, so ties go to the lowest index.
        return min(range(len(self._queues)), key=self._load)

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        self._total_requests += 1
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        index = self._select()
        load = self._load(index)
        provider_name = self._queues[index].name
        if load >= self._max_queue_size:
            self._queue_full += 1
            _logger.warning(
                "queue_full",
                provider=provider_name,
                load=load,
                max_queue_size=self._max_queue_size,
            )
            raise QueueFullError(load, provider_name=provider_name)

        chain = self._chains[index]
        try:
            return await self._queues[index].add(lambda: chain.search(query, cancellation))
        except QueueTimeoutError:
            self._timeouts += 1
            raise

    def get_stats(self) -> LoadBalancerStats:
        return LoadBalancerStats(
            total_requests=self._total_requests,
            timeouts=self._timeouts,
            queue_full=self._queue_full,
            providers=[
                ProviderLoad(
                    index=index,
                    name=queue.name,
                    queue_size=queue.size,
                    pending=queue.pending,
                )
                for index, queue in enumerate(self._queues)
            ],
        )

    def __repr__(self) -> str:
        names = ", ".join(q.name for q in self._queues)
        return f"LoadBalancer([{names}], max_queue_size={self._max_queue_size})"
