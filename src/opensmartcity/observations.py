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
Latest observation fetcher.

Each call issues one Datastreams query that filters by datastream name and
station, keeps only the most recent Observation in the current day/month
window and expands it inline. The value is read from
value[0].Observations[0].result.

One call reads one measurement kind; callers wanting several kinds issue
several calls with different queries.
"""

import math
from logging import getLogger
from typing import Any

import pandas as pd

from .client import SensorThingsClient, fetch_json
from .errors import ParseError
from .registry import register_measurement
from .types import Observation

logger = getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

CHANNEL_TEMPERATURE = "temperature"
CHANNEL_HUMIDITY = "humidity"

CELSIUS = "°C"


# ============================================================================
# FETCHER
# ============================================================================


def fetch_latest(
    client: SensorThingsClient, query_path: str, measurement: str = ""
) -> Observation:
    """
    Fetch the most recent observation selected by a Datastreams query.

    Args:
        client: Client bound to the SensorThings deployment
        query_path: Query built with queries.latest_observation_query()
        measurement: Registry name of the measurement, recorded on the result

    Returns:
        Observation: The latest value with its phenomenon time

    Raises:
        HttpStatusError: The query returned a non-200 status
        TransportError: The query never produced a response
        ParseError: No datastream/observation, or a non-numeric result
    """
    payload = fetch_json(client, query_path)
    observation = parse_latest_observation(payload, measurement)
    logger.debug(f"Value: {observation.value} ({observation.datastream})")
    return observation


def parse_latest_observation(payload: Any, measurement: str = "") -> Observation:
    """
    Read value[0].Observations[0] from a Datastreams response.

    Raises:
        ParseError: If either array is missing or empty, or the result is
            not a number
    """
    if not isinstance(payload, dict):
        raise ParseError("Expected an object with a 'value' array")

    datastream = _first(payload.get("value"), "value")
    if not isinstance(datastream, dict):
        raise ParseError("Datastream entry is not an object")

    observation = _first(datastream.get("Observations"), "Observations")
    if not isinstance(observation, dict) or "result" not in observation:
        raise ParseError("Observation entry has no 'result'")

    return Observation(
        measurement=measurement,
        value=_to_number(observation["result"]),
        phenomenon_time=_parse_time(observation.get("phenomenonTime")),
        datastream=datastream.get("name"),
    )


def _first(items: Any, field: str) -> Any:
    """Return the first element of a JSON array, or raise ParseError."""
    if not isinstance(items, list):
        raise ParseError(f"Expected '{field}' to be an array")
    if not items:
        raise ParseError(f"'{field}' array is empty")
    return items[0]


def _to_number(result: Any) -> float:
    if isinstance(result, bool):
        raise ParseError(f"Observation result is not numeric: {result!r}")
    try:
        value = float(result)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Observation result is not numeric: {result!r}") from e
    if not math.isfinite(value):
        raise ParseError(f"Observation result is not numeric: {result!r}")
    return value


def _parse_time(value: Any) -> pd.Timestamp | None:
    # Intervals ("start/end") are reduced to their end instant
    if not isinstance(value, str) or not value:
        return None
    timestamp = pd.to_datetime(value.split("/")[-1], errors="coerce", utc=True)
    return None if pd.isna(timestamp) else timestamp


# ============================================================================
# MEASUREMENT REGISTRATION
# ============================================================================

register_measurement(
    "TEMPERATURE",
    {
        "name": "Air temperature",
        "channel": CHANNEL_TEMPERATURE,
        "datastream_filter": "lufttemperatur",
        "unit": CELSIUS,
        "placeholder": None,
    },
)

register_measurement(
    "HUMIDITY",
    {
        "name": "Relative humidity",
        "channel": CHANNEL_HUMIDITY,
        "datastream_filter": "luftfeuchte",
        "unit": None,
        "placeholder": None,
    },
)
