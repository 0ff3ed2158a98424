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
Measurement registry for OpenSmartCity.

Each measurement kind the handler can publish (temperature, humidity, ...)
is registered as a TargetMeasurement and retrieved by name. The registry is
just a dictionary; the built-in measurements register themselves when
opensmartcity.observations is imported.

Example:
    >>> from opensmartcity.registry import register_measurement, get_measurement
    >>>
    >>> register_measurement("PRESSURE", {
    ...     "name": "Air pressure",
    ...     "channel": "pressure",
    ...     "datastream_filter": "luftdruck",
    ...     "unit": "hPa",
    ... })
    >>> get_measurement("pressure")["channel"]
    'pressure'
"""

from typing import Dict

from .types import TargetMeasurement

# The global registry - names are stored upper-cased
_MEASUREMENTS: Dict[str, TargetMeasurement] = {}

REQUIRED_FIELDS = ("name", "channel", "datastream_filter")


def register_measurement(name: str, spec: TargetMeasurement) -> None:
    """
    Register a measurement kind in the global registry.

    Measurements are identified by name (case-insensitive). If a measurement
    with the same name already exists, it will be replaced with a warning.

    Args:
        name: Unique identifier (e.g., "TEMPERATURE")
        spec: TargetMeasurement describing channel, datastream filter and unit

    Raises:
        ValueError: If a required field is missing from spec
    """
    import warnings

    missing = [key for key in REQUIRED_FIELDS if not spec.get(key)]
    if missing:
        raise ValueError(f"Measurement '{name}' is missing fields: {missing}")

    normalized_name = name.upper()

    if normalized_name in _MEASUREMENTS:
        warnings.warn(
            f"Measurement '{normalized_name}' is already registered and will be replaced",
            UserWarning,
            stacklevel=2,
        )

    _MEASUREMENTS[normalized_name] = spec


def unregister_measurement(name: str) -> bool:
    """
    Remove a measurement from the registry.

    Returns:
        bool: True if it was removed, False if it wasn't registered
    """
    normalized_name = name.upper()

    if normalized_name in _MEASUREMENTS:
        del _MEASUREMENTS[normalized_name]
        return True
    return False


def get_measurement(name: str) -> TargetMeasurement | None:
    """Retrieve a registered measurement by name (case-insensitive)."""
    return _MEASUREMENTS.get(name.upper())


def list_measurements() -> list[str]:
    """Return all registered measurement names, sorted."""
    return sorted(_MEASUREMENTS.keys())


def clear_registry() -> None:
    """
    Remove every registered measurement.

    Primarily useful for testing.
    """
    _MEASUREMENTS.clear()
