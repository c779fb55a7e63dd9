"""Utility modules for the geocoder.

- **errors** -- exception hierarchy rooted at GeocoderError.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
- **cancellation** -- cooperative CancellationToken passed down the pipeline.
- **concurrency** -- TaskQueue with bounded concurrency, start-rate cap and
  per-task timeout.
- **http** (not re-exported here) -- JSON GET helper with retry/backoff used
  by the provider adapters.
- **query** (not re-exported here) -- front-door query normalisation shared
  by the API and the CLI.
"""

from gittrends_geocoder.utils.cancellation import CancellationToken, is_cancelled
from gittrends_geocoder.utils.concurrency import TaskQueue
from gittrends_geocoder.utils.errors import (
    ConfigurationError,
    GeocoderError,
    InvalidQueryError,
    NoProvidersError,
    ProviderError,
    QueueFullError,
    QueueTimeoutError,
    RateLimitError,
    RequestCancelledError,
    StorageError,
)
from gittrends_geocoder.utils.logging import configure_logging, get_logger

__all__ = [
    "CancellationToken",
    "ConfigurationError",
    "GeocoderError",
    "InvalidQueryError",
    "NoProvidersError",
    "ProviderError",
    "QueueFullError",
    "QueueTimeoutError",
    "RateLimitError",
    "RequestCancelledError",
    "StorageError",
    "TaskQueue",
    "configure_logging",
    "get_logger",
    "is_cancelled",
]
