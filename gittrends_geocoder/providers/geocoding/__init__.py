"""Geocoding provider adapters.

Each adapter translates a query into one HTTP call against a specific
service and maps the response onto Address.  Adapters never throttle or
cache; that is the pipeline's job.
"""

from gittrends_geocoder.providers.geocoding.locationiq_provider import LocationIQProvider
from gittrends_geocoder.providers.geocoding.openstreetmap_provider import OpenStreetMapProvider
from gittrends_geocoder.providers.geocoding.photon_provider import PhotonProvider

__all__ = [
    "LocationIQProvider",
    "OpenStreetMapProvider",
    "PhotonProvider",
]
