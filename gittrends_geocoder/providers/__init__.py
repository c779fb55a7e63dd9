"""Concrete adapters: geocoding services and cache storage backends."""
