"""Unit tests for Address and the stats snapshots."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from gittrends_geocoder.models.address import Address
from gittrends_geocoder.models.stats import CacheStats, LoadBalancerStats, ProviderLoad


class TestAddress:
    def test_minimal_address(self) -> None:
        address = Address(source="brazil", name="Brazil")
        assert address.confidence == 0.0
        assert address.provider is None
        assert address.city is None

    def test_is_frozen(self) -> None:
        address = Address(source="brazil", name="Brazil")
        with pytest.raises(ValidationError):
            address.name = "Argentina"  # type: ignore[misc]

    @pytest.mark.parametrize("raw, expected", [(None, 0.0), ("", 0.0), ("0.75", 0.75), (1, 1.0)])
    def test_confidence_is_coerced(self, raw: object, expected: float) -> None:
        address = Address(source="q", name="n", confidence=raw)  # type: ignore[arg-type]
        assert address.confidence == expected
        assert isinstance(address.confidence, float)

    def test_country_code_upper_cased(self) -> None:
        assert Address(source="q", name="n", country_code="br").country_code == "BR"

    def test_json_dump(self) -> None:
        address = Address(source="brazil", name="Brazil", country_code="BR", confidence=0.5)
        dumped = address.model_dump(mode="json")
        assert dumped["source"] == "brazil"
        assert dumped["country_code"] == "BR"
        assert Address.model_validate(dumped) == address


class TestStats:
    def test_provider_load_is_computed(self) -> None:
        load = ProviderLoad(index=0, name="photon", queue_size=3, pending=2)
        assert load.load == 5
        assert load.model_dump()["load"] == 5

    def test_defaults(self) -> None:
        assert CacheStats().hits == 0
        assert LoadBalancerStats().providers == []
