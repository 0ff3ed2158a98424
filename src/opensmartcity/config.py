# OpenSmartCity: poll SensorThings weather stations and publish typed state
# Copyright (C) 2025 Ruaraidh Dobson, South London Scientific

# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.

# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Configuration for the bridge (API connection) and the weather handler.

Values are read from OPENSMARTCITY_* environment variables. Credentials are
never hard-coded: put them in the environment or in a .env file loaded by
the command line entry point.

Environment variables:
    OPENSMARTCITY_BASE_URL          Service root of the SensorThings API (required)
    OPENSMARTCITY_REFRESH_INTERVAL  Seconds between polls (default 60)
    OPENSMARTCITY_TIMEOUT           Per-request timeout in seconds (default 10)
    OPENSMARTCITY_RETRY_ATTEMPTS    Attempts per request (default 1)
    OPENSMARTCITY_USERNAME          Basic auth user (optional)
    OPENSMARTCITY_PASSWORD          Basic auth password (optional)
    OPENSMARTCITY_LOCATION          Reference location "lat,lon" (required)
    OPENSMARTCITY_STATION_NAME      Location name used by the static filter
    OPENSMARTCITY_USE_NEAREST_STATION  "true" to query the nearest station
    OPENSMARTCITY_MEASUREMENTS      Comma-separated measurement names
"""

import os
from dataclasses import dataclass, field

from .client import DEFAULT_RETRY_ATTEMPTS, DEFAULT_TIMEOUT
from .errors import ConfigurationError

ENV_PREFIX = "OPENSMARTCITY_"

DEFAULT_REFRESH_INTERVAL = 60  # seconds
DEFAULT_STATION_NAME = "Dorper Straße / Goerdeler Straße"
DEFAULT_MEASUREMENTS = ("TEMPERATURE", "HUMIDITY")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class BridgeConfig:
    """Connection settings shared by every handler polling the same API."""

    base_url: str
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    username: str | None = None
    password: str | None = field(default=None, repr=False)

    def __post_init__(self):
        if not self.base_url:
            raise ConfigurationError("Bridge base URL is mandatory")
        if self.refresh_interval <= 0:
            raise ConfigurationError(
                f"Refresh interval must be positive, got {self.refresh_interval}"
            )
        if self.timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive, got {self.timeout}")
        if self.retry_attempts < 1:
            raise ConfigurationError(
                f"Retry attempts must be at least 1, got {self.retry_attempts}"
            )


@dataclass
class WeatherConfig:
    """
    Settings of one weather handler.

    An empty location is allowed here; the handler reports it as a
    configuration error when it initialises.
    """

    location: str = ""
    station_name: str = DEFAULT_STATION_NAME
    use_nearest_station: bool = False
    measurements: tuple[str, ...] = DEFAULT_MEASUREMENTS


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(ENV_PREFIX + name, default)


def _env_number(name: str, default, cast):
    raw = _env(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from e


def parse_bool(value: str) -> bool:
    """Interpret common spellings of true/false."""
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Not a boolean value: {value!r}")


def parse_measurements(value: str) -> tuple[str, ...]:
    """Split a comma-separated list of measurement names."""
    names = tuple(part.strip().upper() for part in value.split(",") if part.strip())
    if not names:
        raise ConfigurationError("At least one measurement must be configured")
    return names


def load_bridge_config() -> BridgeConfig:
    """
    Build a BridgeConfig from the environment.

    Raises:
        ConfigurationError: If the base URL is missing or a number is invalid
    """
    base_url = _env("BASE_URL")
    if not base_url:
        raise ConfigurationError(
            f"SensorThings base URL required. Set {ENV_PREFIX}BASE_URL in .env file."
        )

    return BridgeConfig(
        base_url=base_url,
        refresh_interval=_env_number(
            "REFRESH_INTERVAL", DEFAULT_REFRESH_INTERVAL, int
        ),
        timeout=_env_number("TIMEOUT", DEFAULT_TIMEOUT, float),
        retry_attempts=_env_number("RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS, int),
        username=_env("USERNAME") or None,
        password=_env("PASSWORD") or None,
    )


def load_weather_config() -> WeatherConfig:
    """Build a WeatherConfig from the environment."""
    measurements = _env("MEASUREMENTS")
    return WeatherConfig(
        location=_env("LOCATION", "") or "",
        station_name=_env("STATION_NAME") or DEFAULT_STATION_NAME,
        use_nearest_station=parse_bool(_env("USE_NEAREST_STATION", "") or ""),
        measurements=(
            parse_measurements(measurements) if measurements else DEFAULT_MEASUREMENTS
        ),
    )
