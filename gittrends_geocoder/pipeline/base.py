"""Common base for geocoders that wrap another geocoder."""

from __future__ import annotations

from gittrends_geocoder.interfaces.geocoder import IGeocoder


class GeocoderDecorator(IGeocoder):
    """An :class:`IGeocoder` that delegates to a wrapped geocoder.

    Subclasses implement ``search``; the provider name is taken from the
    wrapped geocoder so logs and stats name the upstream service rather
    than the decorator stack.
    """

    def __init__(self, geocoder: IGeocoder) -> None:
        self._geocoder = geocoder

    @property
    def geocoder(self) -> IGeocoder:
        return self._geocoder

    def get_provider_name(self) -> str:
        return self._geocoder.get_provider_name()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._geocoder!r})"
