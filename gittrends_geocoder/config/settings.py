"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, highest priority first:

  1. Environment variables, e.g. ``OSM_EMAIL=ops@example.org``
  2. A ``.env`` file in the working directory (local development)

Field names map to upper-cased variable names automatically
(``cache_size`` <- ``CACHE_SIZE``).  Defaults apply when neither source
sets a value.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from gittrends_geocoder.utils.errors import ConfigurationError

PUBLIC_NOMINATIM_SERVER = "https://nominatim.openstreetmap.org"


class Settings(BaseSettings):
    """Geocoder service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === App Config ===
    app_host: str = "localhost"
    app_port: int = 3000
    app_env: str = "development"
    log_level: str = "INFO"

    # === Cache ===
    cache_dir: str = str(Path.home() / ".cache" / "gittrends-geocoder")
    # Entries kept in memory; 0 disables caching entirely.
    cache_size: int = 1000
    # Seconds; 0 keeps entries forever.
    cache_ttl: float = 0

    # === OpenStreetMap (Nominatim) ===
    osm_server: str = PUBLIC_NOMINATIM_SERVER
    osm_email: str = ""
    osm_user_agent: str = ""
    osm_min_confidence: float = 0.0
    osm_concurrency: int = 1
    # Request starts per second; 0 disables the rate cap.
    osm_rate_per_second: int = 1

    # === Photon ===
    # Empty string disables the provider.
    photon_server: str = "https://photon.komoot.io"
    photon_concurrency: int = 1

    # === LocationIQ ===
    # Empty string = "not configured"; the provider is skipped.
    locationiq_api_key: str = ""
    locationiq_base_url: str = "https://us1.locationiq.com/v1"
    locationiq_min_confidence: float = 0.0
    locationiq_concurrency: int = 1

    # === Load balancing ===
    loadbalancer_max_queue_size: int = 1000
    # Seconds; 0 disables the per-request timeout.
    loadbalancer_queue_timeout: float = 30

    # === Outbound HTTP ===
    http_timeout: float = 10
    http_retries: int = 3

    # === Inbound rate limiting ===
    # Requests per client per window; 0 disables the limiter.
    rate_limit_max: int = 0
    rate_limit_window: float = 60

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def get_enabled_providers(self) -> list[str]:
        """Return the geocoding providers that have enough configuration to run."""
        providers: list[str] = []
        if self.osm_server:
            providers.append("openstreetmap")
        if self.photon_server:
            providers.append("photon")
        if self.locationiq_api_key:
            providers.append("locationiq")
        return providers

    def validate_osm(self) -> None:
        """Enforce the public Nominatim usage policy.

        Raises
        ------
        ConfigurationError
            When the public server is configured without both an e-mail and
            a User-Agent.
        """
        if self.osm_server.rstrip("/") != PUBLIC_NOMINATIM_SERVER:
            return
        if not self.osm_email or not self.osm_user_agent:
            raise ConfigurationError(
                message=(
                    "You must provide an email and user agent for the default "
                    "OpenStreetMap server (OSM_EMAIL / OSM_USER_AGENT)"
                ),
                provider_name="openstreetmap",
            )
