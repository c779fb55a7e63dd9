"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides (not committed)
  3. Environment vars    -- set at deploy time

The YAML file decides *how* providers are composed (order and strategy);
Settings decides *which* providers can run and how hard they may be used.
"""

from pathlib import Path
from typing import Any

import yaml

from gittrends_geocoder.config.settings import Settings
from gittrends_geocoder.utils.errors import ConfigurationError

STRATEGIES = ("loadbalancer", "fallback")

_DEFAULTS: dict[str, Any] = {
    "geocoder": {
        "providers": ["openstreetmap", "photon", "locationiq"],
        "strategy": "loadbalancer",
    },
    "cache": {
        "filename": "geocoder-cache.db",
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is not an
              error; built-in defaults are used.
        settings: Settings to merge; read from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: On unreadable YAML or an unknown strategy.
    """
    config: dict[str, Any] = {
        "geocoder": dict(_DEFAULTS["geocoder"]),
        "cache": dict(_DEFAULTS["cache"]),
    }

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"{config_path} must contain a mapping")
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "geocoder": {
            "enabled_providers": settings.get_enabled_providers(),
        },
        "cache": {
            "dir": settings.cache_dir,
            "size": settings.cache_size,
            "ttl": settings.cache_ttl,
        },
        "loadbalancer": {
            "max_queue_size": settings.loadbalancer_max_queue_size,
            "queue_timeout": settings.loadbalancer_queue_timeout,
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    _deep_merge(config, env_overrides)

    strategy = config["geocoder"].get("strategy")
    if strategy not in STRATEGIES:
        raise ConfigurationError(
            message=f"geocoder.strategy must be one of {', '.join(STRATEGIES)}, got {strategy!r}"
        )
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
