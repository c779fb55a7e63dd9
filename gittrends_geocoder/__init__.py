"""gittrends-geocoder: resolve free-form locations through a composable geocoder pipeline."""

__version__ = "0.1.0"
