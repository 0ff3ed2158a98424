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
Nearest online station resolution.

Fetches every Location whose Things report an "online" status, computes the
great-circle distance from the reference point to each one and returns them
ordered nearest first. Nothing is cached: a station that went offline since
the previous cycle simply disappears from the next result.

Location coordinates arrive as GeoJSON, i.e. [longitude, latitude]; they are
swapped to (latitude, longitude) while parsing.
"""

from logging import getLogger
from typing import Any

import pandas as pd

from .client import SensorThingsClient, fetch_json
from .errors import ParseError
from .geo import distances_from
from .queries import LOCATIONS_ONLINE_QUERY
from .types import DISTANCE_COLUMNS, ReferencePoint, Station

logger = getLogger(__name__)


def resolve_nearest_online(
    reference: ReferencePoint,
    client: SensorThingsClient,
    query_path: str = LOCATIONS_ONLINE_QUERY,
) -> pd.DataFrame:
    """
    Fetch online stations and order them by distance from a reference point.

    Args:
        reference: Point distances are measured from
        client: Client bound to the SensorThings deployment
        query_path: List query to issue (defaults to the online Locations query)

    Returns:
        pd.DataFrame: Distance index with columns
            - site_code: Location @iot.id (as string)
            - site_name: Location name
            - latitude: Station latitude
            - longitude: Station longitude
            - distance_km: Great-circle distance from the reference point
        sorted ascending by distance_km; ties keep response order.

    Raises:
        HttpStatusError: The list query returned a non-200 status
        TransportError: The list query never produced a response
        ParseError: The body has the wrong shape or no usable entries

    Example:
        >>> index = resolve_nearest_online(ReferencePoint(51.17, 7.08), client)
        >>> nearest_station(index).site_name
        'Dorper Straße / Goerdeler Straße'
    """
    payload = fetch_json(client, query_path)
    stations = parse_locations(payload)

    if stations.empty:
        raise ParseError("No online station with usable coordinates in response")

    stations["distance_km"] = distances_from(reference, stations)
    index = stations.sort_values("distance_km", kind="stable").reset_index(drop=True)

    nearest = index.iloc[0]
    logger.debug(f"Nearest station @iot.id:{nearest['site_code']} / {nearest['site_name']}")
    logger.debug(f"Distance: {nearest['distance_km']:.3f} km")

    return index[DISTANCE_COLUMNS]


def parse_locations(payload: Any) -> pd.DataFrame:
    """
    Turn a Locations response into a station DataFrame.

    Entries missing an @iot.id or a usable coordinate pair are skipped;
    a payload that is not an object with a "value" array is rejected.

    Raises:
        ParseError: If the top-level shape is wrong
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("value"), list):
        raise ParseError("Expected an object with a 'value' array")

    records = []
    for entry in payload["value"]:
        record = _parse_location_entry(entry)
        if record is None:
            logger.debug(f"Skipping malformed location entry: {entry!r:.200}")
            continue
        records.append(record)

    return pd.DataFrame(records, columns=DISTANCE_COLUMNS[:-1])


def _parse_location_entry(entry: Any) -> dict | None:
    """Extract one station record, or None if the entry is unusable."""
    if not isinstance(entry, dict):
        return None

    site_code = entry.get("@iot.id")
    if site_code is None or isinstance(site_code, (dict, list)):
        return None

    location = entry.get("location")
    if not isinstance(location, dict):
        return None

    coordinates = location.get("coordinates")
    if not isinstance(coordinates, list) or len(coordinates) < 2:
        return None

    longitude, latitude = coordinates[0], coordinates[1]
    if isinstance(longitude, bool) or isinstance(latitude, bool):
        return None
    try:
        latitude = float(latitude)
        longitude = float(longitude)
    except (TypeError, ValueError):
        return None

    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        return None

    return {
        "site_code": str(site_code),
        "site_name": str(entry.get("name") or ""),
        "latitude": latitude,
        "longitude": longitude,
    }


def nearest_station(index: pd.DataFrame) -> Station:
    """
    Return the first (nearest) row of a distance index as a Station.

    Raises:
        ParseError: If the index is empty
    """
    if index.empty:
        raise ParseError("Distance index is empty")

    row = index.iloc[0]
    return Station(
        site_code=str(row["site_code"]),
        site_name=str(row["site_name"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        distance_km=float(row["distance_km"]),
    )
