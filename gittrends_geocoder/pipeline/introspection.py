"""Walk a composed geocoder stack to find its components.

Used by the ``/stats`` endpoint to gather counters and by the application
shutdown path to close every cache in the stack.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TypeVar

from gittrends_geocoder.interfaces.geocoder import IGeocoder
from gittrends_geocoder.pipeline.base import GeocoderDecorator
from gittrends_geocoder.pipeline.fallback import Fallback
from gittrends_geocoder.pipeline.load_balancer import LoadBalancer

_G = TypeVar("_G", bound=IGeocoder)


def iter_components(geocoder: IGeocoder) -> Iterator[IGeocoder]:
    """Yield every distinct component of *geocoder*, outermost first."""
    seen: set[int] = set()
    stack = [geocoder]
    while stack:
        component = stack.pop()
        if id(component) in seen:
            continue
        seen.add(id(component))
        yield component
        if isinstance(component, Fallback):
            stack.extend([component.secondary, component.primary])
        elif isinstance(component, GeocoderDecorator):
            stack.append(component.geocoder)
        elif isinstance(component, LoadBalancer):
            stack.extend(reversed(component.providers))


def find_components(geocoder: IGeocoder, kind: type[_G]) -> list[_G]:
    """Return the components of *geocoder* that are instances of *kind*."""
    return [c for c in iter_components(geocoder) if isinstance(c, kind)]
