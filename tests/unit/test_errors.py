"""Unit tests for the GeocoderError hierarchy."""

from __future__ import annotations

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


class TestGeocoderError:
    def test_str_prefixes_provider(self) -> None:
        err = ProviderError(message="HTTP 502 from upstream", provider_name="photon")
        assert str(err) == "[photon] HTTP 502 from upstream"
        assert err.message == "HTTP 502 from upstream"

    def test_str_without_provider(self) -> None:
        assert str(GeocoderError("boom")) == "boom"

    def test_every_error_is_a_geocoder_error(self) -> None:
        errors = [
            RequestCancelledError("brazil"),
            QueueFullError(10),
            QueueTimeoutError(1.5),
            ProviderError(),
            RateLimitError(),
            StorageError("get"),
            NoProvidersError(),
            ConfigurationError(),
            InvalidQueryError("q", "", "is empty"),
        ]
        assert all(isinstance(err, GeocoderError) for err in errors)

    def test_rate_limit_is_a_provider_error(self) -> None:
        err = RateLimitError(provider_name="openstreetmap", retry_after=30)
        assert isinstance(err, ProviderError)
        assert err.status_code == 429
        assert err.retry_after == 30
        assert "retry after 30s" in err.message

    def test_queue_errors_carry_details(self) -> None:
        assert QueueFullError(1000, provider_name="photon").queue_size == 1000
        timeout = QueueTimeoutError(2.5, provider_name="photon")
        assert timeout.timeout == 2.5
        assert "2.5s" in timeout.message

    def test_storage_error_includes_cause(self) -> None:
        cause = OSError("disk full")
        err = StorageError("set", provider_name="sqlite-cache", cause=cause)
        assert err.operation == "set"
        assert err.cause is cause
        assert "disk full" in err.message

    def test_invalid_query_message(self) -> None:
        err = InvalidQueryError("q", "", "must be between 1 and 500 characters")
        assert err.message == "q must be between 1 and 500 characters"
        assert err.field == "q"
