"""Unit tests for Settings and the YAML configuration loader."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_settings

from gittrends_geocoder.config.loader import load_config
from gittrends_geocoder.config.settings import PUBLIC_NOMINATIM_SERVER, Settings
from gittrends_geocoder.utils.errors import ConfigurationError


# ======================================================================
# Settings
# ======================================================================


class TestSettings:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_PORT", "8080")
        monkeypatch.setenv("CACHE_SIZE", "0")
        monkeypatch.setenv("OSM_EMAIL", "ops@example.org")
        settings = Settings()
        assert settings.app_port == 8080
        assert settings.cache_size == 0
        assert settings.osm_email == "ops@example.org"

    def test_enabled_providers_follow_configuration(self) -> None:
        assert make_settings().get_enabled_providers() == ["openstreetmap", "photon"]
        assert make_settings(locationiq_api_key="pk.test").get_enabled_providers() == [
            "openstreetmap",
            "photon",
            "locationiq",
        ]
        assert make_settings(osm_server="", photon_server="").get_enabled_providers() == []

    def test_is_production(self) -> None:
        assert make_settings(app_env="production").is_production is True
        assert make_settings().is_production is False

    def test_public_osm_server_requires_identification(self) -> None:
        settings = make_settings(osm_server=PUBLIC_NOMINATIM_SERVER)
        with pytest.raises(ConfigurationError, match="email and user agent"):
            settings.validate_osm()

        make_settings(
            osm_server=PUBLIC_NOMINATIM_SERVER + "/",
            osm_email="ops@example.org",
            osm_user_agent="gittrends",
        ).validate_osm()

    def test_private_osm_server_needs_nothing(self) -> None:
        make_settings(osm_server="http://nominatim.internal").validate_osm()


# ======================================================================
# load_config
# ======================================================================


class TestLoadConfig:
    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=make_settings())
        assert config["geocoder"]["providers"] == ["openstreetmap", "photon", "locationiq"]
        assert config["geocoder"]["strategy"] == "loadbalancer"
        assert config["cache"]["filename"] == "geocoder-cache.db"

    def test_yaml_overrides_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("geocoder:\n  providers: [photon]\n  strategy: fallback\n")
        config = load_config(str(path), settings=make_settings())
        assert config["geocoder"]["providers"] == ["photon"]
        assert config["geocoder"]["strategy"] == "fallback"
        assert config["cache"]["filename"] == "geocoder-cache.db"

    def test_settings_are_merged_on_top(self, tmp_path: Path) -> None:
        config = load_config(
            str(tmp_path / "absent.yaml"),
            settings=make_settings(cache_size=42, app_port=9000),
        )
        assert config["cache"]["size"] == 42
        assert config["app"]["port"] == 9000
        assert config["geocoder"]["enabled_providers"] == ["openstreetmap", "photon"]

    def test_unknown_strategy(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("geocoder:\n  strategy: roundrobin\n")
        with pytest.raises(ConfigurationError, match="roundrobin"):
            load_config(str(path), settings=make_settings())

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("geocoder: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(str(path), settings=make_settings())

    def test_non_mapping_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(str(path), settings=make_settings())

    def test_repository_config_is_valid(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        config = load_config(str(path), settings=make_settings())
        assert config["geocoder"]["strategy"] == "loadbalancer"
