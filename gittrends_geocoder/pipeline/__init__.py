"""Composable geocoder decorators.

Each component implements IGeocoder and wraps one (or, for LoadBalancer,
several) other geocoders, so they stack freely:

    Cache(LoadBalancer([Throttler(osm), Throttler(photon)]))
"""

from gittrends_geocoder.pipeline.base import GeocoderDecorator
from gittrends_geocoder.pipeline.cache import Cache
from gittrends_geocoder.pipeline.fallback import Fallback
from gittrends_geocoder.pipeline.introspection import find_components, iter_components
from gittrends_geocoder.pipeline.load_balancer import LoadBalancer
from gittrends_geocoder.pipeline.throttler import Throttler

__all__ = [
    "Cache",
    "Fallback",
    "GeocoderDecorator",
    "LoadBalancer",
    "Throttler",
    "find_components",
    "iter_components",
]
