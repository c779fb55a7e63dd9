"""Public interface definitions.

Geocoding providers and pipeline decorators are both accessed through
IGeocoder; cache tiers through ICacheProvider.  Concrete adapters live in
``gittrends_geocoder/providers/`` and are assembled in
``gittrends_geocoder/main.py``.
"""

from gittrends_geocoder.interfaces.cache_provider import ICacheProvider
from gittrends_geocoder.interfaces.geocoder import IGeocoder

__all__ = [
    "ICacheProvider",
    "IGeocoder",
]
