"""Per-provider request throttling.

A :class:`Throttler` puts one provider behind a :class:`TaskQueue` so that
no more than *concurrency* requests reach it at once and, optionally, no
more than *interval_cap* requests start per *interval* seconds.

Cancellation is checked twice: before the request is queued, and again
when a slot frees up.  A request whose caller gave up while it was waiting
therefore never reaches the provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.models.stats import QueueStats
from gittrends_geocoder.pipeline.base import GeocoderDecorator
from gittrends_geocoder.utils.cancellation import is_cancelled
from gittrends_geocoder.utils.concurrency import TaskQueue
from gittrends_geocoder.utils.logging import get_logger

if TYPE_CHECKING:
    from gittrends_geocoder.models.address import Address
    from gittrends_geocoder.utils.cancellation import CancellationToken

_logger: structlog.BoundLogger = get_logger(__name__)


class Throttler(GeocoderDecorator):
    """Queue requests to the wrapped geocoder.

    Parameters
    ----------
    geocoder:
        The provider to protect.
    concurrency:
        Maximum simultaneous requests.
    interval_cap:
        Maximum request starts per *interval*; ``None`` disables the cap.
    interval:
        Rate window in seconds.
    timeout:
        Per-request run-time budget in seconds; ``None`` for no limit.
    """

    def __init__(
        self,
        geocoder: IGeocoder,
        concurrency: int = 1,
        interval_cap: int | None = None,
        interval: float = 1.0,
        timeout: float | None = None,
    ) -> None:
        super().__init__(geocoder)
        self._queue = TaskQueue(
            concurrency=concurrency,
            interval_cap=interval_cap,
            interval=interval,
            timeout=timeout,
            name=geocoder.get_provider_name(),
        )

    @property
    def size(self) -> int:
        """Requests waiting for a slot."""
        return self._queue.size

    @property
    def pending(self) -> int:
        """Requests currently running against the provider."""
        return self._queue.pending

    def get_stats(self) -> QueueStats:
        return self._queue.get_stats()

    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        if cancellation is not None:
            cancellation.raise_if_cancelled(query)

        async def _run() -> Address | None:
            if is_cancelled(cancellation):
                _logger.debug(
                    "throttled_request_dropped",
                    provider=self.get_provider_name(),
                    query=query,
                )
                cancellation.raise_if_cancelled(query)
            return await self._geocoder.search(query, cancellation)

        return await self._queue.add(_run)
