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
Geodesy helpers: parsing reference locations and great-circle distances.
"""

import math

import pandas as pd

from .errors import ConfigurationError
from .types import ReferencePoint

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance in km between two points.

    Uses the Haversine formula on a spherical Earth.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    # Rounding can push a fractionally above 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def parse_reference_point(text: str | None) -> ReferencePoint:
    """
    Parse a "lat,lon" or "lat,lon,alt" string into a ReferencePoint.

    The altitude, when present, is validated and discarded.

    Raises:
        ConfigurationError: If the string is empty, malformed or out of range
    """
    if text is None or not text.strip():
        raise ConfigurationError("Reference location is mandatory")

    parts = [part.strip() for part in text.split(",")]
    if len(parts) not in (2, 3):
        raise ConfigurationError(
            f"Reference location must be 'lat,lon' or 'lat,lon,alt', got {text!r}"
        )

    try:
        values = [float(part) for part in parts]
    except ValueError as e:
        raise ConfigurationError(f"Reference location is not numeric: {text!r}") from e

    latitude, longitude = values[0], values[1]
    if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
        raise ConfigurationError(f"Reference location out of range: {text!r}")

    return ReferencePoint(latitude=latitude, longitude=longitude)


def distances_from(reference: ReferencePoint, df: pd.DataFrame) -> pd.Series:
    """
    Distance in km from a reference point to each row of a station DataFrame.

    The DataFrame must have "latitude" and "longitude" columns.
    """
    if df.empty:
        return pd.Series([], index=df.index, dtype=float)

    return df.apply(
        lambda row: haversine_distance(
            reference.latitude, reference.longitude, row["latitude"], row["longitude"]
        ),
        axis=1,
    ).astype(float)
