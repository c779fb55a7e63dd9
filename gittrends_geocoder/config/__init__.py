"""Configuration module -- exports Settings and load_config."""

from gittrends_geocoder.config.loader import load_config
from gittrends_geocoder.config.settings import Settings

__all__ = ["Settings", "load_config"]
