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
Core type definitions for OpenSmartCity.

This module defines the value types that flow through a poll cycle: the
configured reference point, the stations returned by the network, the
observations fetched for them, the typed state published on channels and
the outcome of each cycle.

Everything here except ReferencePoint is cycle-scoped: it is built during
one poll and discarded once the cycle has published its status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeAlias, TypedDict

import pandas as pd


# ============================================================================
# GEOGRAPHY
# ============================================================================


@dataclass(frozen=True)
class ReferencePoint:
    """Fixed geographic coordinate the nearest station is measured from."""

    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f"{self.latitude},{self.longitude}"


@dataclass(frozen=True)
class Station:
    """A SensorThings Location currently reporting as online."""

    site_code: str  # @iot.id, always kept as a string
    site_name: str
    latitude: float
    longitude: float
    distance_km: float | None = None


# Columns of the distance index returned by the resolver, in order
DISTANCE_COLUMNS = [
    "site_code",
    "site_name",
    "latitude",
    "longitude",
    "distance_km",
]


# ============================================================================
# MEASUREMENTS
# ============================================================================


class TargetMeasurement(TypedDict, total=False):
    """
    Specification for a measurement kind published by the handler.

    Required fields:
        name: Human-readable name (e.g., "Air temperature")
        channel: Channel identifier the value is published on
        datastream_filter: Substring matched against Datastream names

    Optional fields:
        unit: Physical unit; values without one are published as plain decimals
        placeholder: Constant published instead of fetching the datastream
    """
    name: str
    channel: str
    datastream_filter: str
    unit: str | None
    placeholder: float | None


@dataclass(frozen=True)
class Observation:
    """Most recent reading of one measurement kind."""

    measurement: str
    value: float
    phenomenon_time: pd.Timestamp | None = None
    datastream: str | None = None


# ============================================================================
# PUBLISHED STATE
# ============================================================================


class ThingStatus(Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    UNKNOWN = "UNKNOWN"


class StatusDetail(Enum):
    NONE = "NONE"
    COMMUNICATION_ERROR = "COMMUNICATION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


@dataclass(frozen=True)
class QuantityValue:
    """A numeric value carrying a physical unit, e.g. 21.4 °C."""

    value: float
    unit: str

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"


@dataclass(frozen=True)
class DecimalValue:
    """A plain numeric value without a unit."""

    value: float

    def __str__(self) -> str:
        return str(self.value)


StateValue: TypeAlias = QuantityValue | DecimalValue


# ============================================================================
# POLL RESULTS
# ============================================================================

# Stage names carried by failures so the status mapping can tell them apart
STAGE_RESOLVE = "resolve"
STAGE_FETCH = "fetch"


@dataclass(frozen=True)
class Success:
    """All configured measurements were read."""

    values: dict[str, StateValue] = field(default_factory=dict)
    station: Station | None = None


@dataclass(frozen=True)
class HttpFailure:
    """The API answered with a non-200 status code."""

    status_code: int
    stage: str = STAGE_FETCH


@dataclass(frozen=True)
class TransportFailure:
    """The request never produced a response (timeout, connection error)."""

    cause: Any
    stage: str = STAGE_FETCH


@dataclass(frozen=True)
class ParseFailure:
    """The response body did not have the expected shape."""

    cause: Any
    stage: str = STAGE_FETCH


@dataclass(frozen=True)
class ConfigFailure:
    """The handler could not start because its configuration is invalid."""

    cause: Any


PollResult: TypeAlias = (
    Success | HttpFailure | TransportFailure | ParseFailure | ConfigFailure
)
"""
Outcome of a single poll cycle.

Built at the end of a cycle, consumed by the status publication step and
then discarded.
"""
