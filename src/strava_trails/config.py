"""Configuration management for strava-trails.

Handles loading configuration from TOML files, environment variables,
and command-line options with proper precedence.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "strava-trails" / "config.toml"
LOCAL_CONFIG_NAME = ".strava-trails.toml"
DEFAULT_LOG_DIR = Path("./logs")

STRAVA_API_URL = "https://www.strava.com/api/v3"
MAPBOX_GEOCODING_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"

UNIT_SYSTEMS = ("metric", "imperial")


@dataclass
class StravaConfig:
    """Strava API configuration."""

    access_token: str = ""
    fallback_token: str = ""
    api_url: str = STRAVA_API_URL

    def tokens(self) -> list[str]:
        """Return configured tokens in the order they should be tried."""
        return [t for t in (self.access_token, self.fallback_token) if t]


@dataclass
class MapboxConfig:
    """Mapbox reverse geocoding configuration."""

    access_token: str = ""
    geocoding_url: str = MAPBOX_GEOCODING_URL


@dataclass
class EngineConfig:
    """Activity loading behavior."""

    per_page: int = 30
    max_auth_retries: int = 2
    skeleton_min_ms: int = 400
    unit_system: str = "imperial"
    request_timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Log file configuration."""

    directory: Path = field(default_factory=lambda: DEFAULT_LOG_DIR)


@dataclass
class Config:
    """Main configuration container."""

    strava: StravaConfig = field(default_factory=StravaConfig)
    mapbox: MapboxConfig = field(default_factory=MapboxConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Path | None = None


def _get_env_value(key: str, default: str = "") -> str:
    """Get environment variable value."""
    return os.environ.get(key, default)


def _find_config_path() -> Path:
    """Locate the configuration file when none was given explicitly."""
    if env_config := _get_env_value("STRAVA_TRAILS_CONFIG"):
        return Path(env_config)

    local_config = Path(LOCAL_CONFIG_NAME)
    if local_config.exists():
        return local_config

    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment variables.

    Configuration is loaded with the following precedence (highest to lowest):
    1. Environment variables
    2. Configuration file
    3. Default values

    Args:
        config_path: Path to configuration file. If None, uses
            STRAVA_TRAILS_CONFIG, then ./.strava-trails.toml, then the
            default location.

    Returns:
        Populated Config object.

    Raises:
        ValueError: If the file is not valid TOML, or a setting has the wrong
            type or an invalid value.
    """
    config = Config()

    if config_path is None:
        config_path = _find_config_path()

    config.config_path = config_path

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _apply_env_overrides(config)
    _validate(config)

    return config


def _load_from_file(path: Path, config: Config) -> Config:
    """Load configuration from TOML file.

    Args:
        path: Path to TOML file.
        config: Existing config to update.

    Returns:
        Updated Config object.
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    if "strava" in data:
        strava = data["strava"]
        config.strava.access_token = strava.get("access_token", config.strava.access_token)
        config.strava.fallback_token = strava.get(
            "fallback_token", config.strava.fallback_token
        )
        config.strava.api_url = strava.get("api_url", config.strava.api_url)

    if "mapbox" in data:
        mapbox = data["mapbox"]
        config.mapbox.access_token = mapbox.get("access_token", config.mapbox.access_token)
        config.mapbox.geocoding_url = mapbox.get("geocoding_url", config.mapbox.geocoding_url)

    if "engine" in data:
        engine = data["engine"]
        config.engine.per_page = _number(engine, "per_page", config.engine.per_page, int)
        config.engine.max_auth_retries = _number(
            engine, "max_auth_retries", config.engine.max_auth_retries, int
        )
        config.engine.skeleton_min_ms = _number(
            engine, "skeleton_min_ms", config.engine.skeleton_min_ms, int
        )
        config.engine.unit_system = engine.get("unit_system", config.engine.unit_system)
        config.engine.request_timeout = float(
            _number(engine, "request_timeout", config.engine.request_timeout, (int, float))
        )

    if "logging" in data and "directory" in data["logging"]:
        config.logging.directory = Path(data["logging"]["directory"])

    return config


def _number(
    section: dict[str, Any], key: str, default: Any, kind: type | tuple[type, ...]
) -> Any:
    """Read a numeric setting, rejecting strings and booleans."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ValueError(f"{key} must be a number, got {value!r}")
    return value


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to configuration.

    Args:
        config: Config to update.

    Returns:
        Updated Config object.
    """
    if access_token := _get_env_value("STRAVA_ACCESS_TOKEN"):
        config.strava.access_token = access_token
    if fallback_token := _get_env_value("STRAVA_FALLBACK_TOKEN"):
        config.strava.fallback_token = fallback_token

    if mapbox_token := _get_env_value("MAPBOX_ACCESS_TOKEN"):
        config.mapbox.access_token = mapbox_token

    if log_dir := _get_env_value("STRAVA_TRAILS_LOG_DIR"):
        config.logging.directory = Path(log_dir)

    if units := _get_env_value("STRAVA_TRAILS_UNITS"):
        config.engine.unit_system = units.lower()

    return config


def _validate(config: Config) -> None:
    if config.engine.unit_system not in UNIT_SYSTEMS:
        raise ValueError(
            f"Unknown unit system {config.engine.unit_system!r} "
            f"(expected one of: {', '.join(UNIT_SYSTEMS)})"
        )
    if config.engine.per_page < 1:
        raise ValueError(f"per_page must be at least 1, got {config.engine.per_page}")
    if config.engine.max_auth_retries < 0:
        raise ValueError("max_auth_retries must not be negative")
