"""Abstract base class for geocoders.

Every component that can answer a location query implements
:class:`IGeocoder`: the HTTP provider adapters in
``gittrends_geocoder/providers/geocoding/`` as well as the pipeline
decorators in ``gittrends_geocoder/pipeline/`` (Cache, Throttler, Fallback,
LoadBalancer).  Because adapters and decorators share one contract, any
decorator can wrap any other and ``main.build_geocoder`` is free to compose
them in whatever order the configuration asks for.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gittrends_geocoder.models.address import Address
    from gittrends_geocoder.utils.cancellation import CancellationToken


class IGeocoder(ABC):
    """Contract for resolving a free-form location string into an Address.

    Implementations must treat "not found" as a normal outcome and return
    ``None``; exceptions are reserved for failures (transport errors, queue
    admission, cancellation).
    """

    @abstractmethod
    async def search(
        self,
        query: str,
        cancellation: CancellationToken | None = None,
    ) -> Address | None:
        """Resolve *query* into an :class:`Address`.

        Parameters
        ----------
        query:
            The location string.  It is used verbatim as the cache key, so
            callers normalise it beforehand if they want "Brazil" and
            "brazil" to share an entry.
        cancellation:
            Optional token; once it fires, work that has not started yet is
            abandoned and the caller receives
            :class:`~gittrends_geocoder.utils.errors.RequestCancelledError`.

        Returns
        -------
        Address or None
            The resolved address, or ``None`` when the location is unknown.
        """

    def get_provider_name(self) -> str:
        """Return a short identifier used in logs, errors and stats."""
        return type(self).__name__
