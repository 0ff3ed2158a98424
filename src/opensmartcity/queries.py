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
SensorThings API query builder.

Only the two query shapes the weather poller needs are modelled:

- the list of Locations whose Things report an "online" status, and
- the latest Observation of a Datastream filtered by name and station.

OData system options ($filter, $expand, $orderby, $top) are percent-encoded
literally, parentheses excepted, which is the form FROST and the
OpenSmartCity deployment accept.

API Documentation: https://docs.ogc.org/is/18-088/18-088.html
"""

from urllib.parse import quote

# ============================================================================
# CONSTANTS
# ============================================================================

API_VERSION = "v1.1"

# Status substring carried in Things/properties/status by live stations
ONLINE_STATUS = "online"

# Observations are limited to the current day/month window on the server
OBSERVATION_WINDOW = (
    "day(now()) sub day(phenomenonTime) le 1 "
    "and month(now()) eq month(phenomenonTime)"
)


# ============================================================================
# ENCODING HELPERS
# ============================================================================


def odata_literal(value: str | int | float) -> str:
    """
    Format a Python value as an OData literal.

    Strings are single-quoted with embedded quotes doubled; numbers are
    written bare.

    Example:
        >>> odata_literal("O'Brien Street")
        "'O''Brien Street'"
        >>> odata_literal(42)
        '42'
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not valid OData identifiers here")
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def build_query(resource: str, options: list[tuple[str, str]]) -> str:
    """
    Build a query path for a SensorThings resource.

    Args:
        resource: Entity set name (e.g., "Locations", "Datastreams")
        options: (name, expression) pairs in the order they should appear

    Returns:
        str: Path starting with "/v1.1/", ready to be appended to a base URL
    """
    encoded = "&".join(
        f"{quote(name, safe='')}={quote(expression, safe='()')}"
        for name, expression in options
    )
    path = f"/{API_VERSION}/{resource}"
    return f"{path}?{encoded}" if encoded else path


# ============================================================================
# QUERY SHAPES
# ============================================================================


def locations_online_query() -> str:
    """Query listing all Locations with at least one online Thing."""
    return build_query(
        "Locations",
        [
            ("$expand", "Things"),
            (
                "$filter",
                f"substringof({odata_literal(ONLINE_STATUS)}, Things/properties/status)",
            ),
        ],
    )


def station_name_clause(station_name: str) -> str:
    """Filter clause selecting Datastreams of a station by its Location name."""
    return f"Thing/Locations/name eq {odata_literal(station_name)}"


def station_id_clause(site_code: str) -> str:
    """
    Filter clause selecting Datastreams of a station by its Location @iot.id.

    Numeric identifiers are written bare, anything else as a string literal.
    """
    identifier: str | int = int(site_code) if site_code.isdigit() else site_code
    return f"Thing/Locations/@iot.id eq {odata_literal(identifier)}"


def latest_observation_query(datastream_filter: str, station_clause: str) -> str:
    """
    Query for the single most recent Observation of a Datastream.

    The Observations are expanded inline so one request is enough.

    Args:
        datastream_filter: Substring matched against the Datastream name
        station_clause: Clause from station_name_clause() or station_id_clause()

    Returns:
        str: Query path for the Datastreams resource
    """
    return build_query(
        "Datastreams",
        [
            ("$top", "1"),
            (
                "$expand",
                "Observations($orderby=phenomenonTime desc;"
                f"$filter={OBSERVATION_WINDOW})",
            ),
            (
                "$filter",
                f"substringof({odata_literal(datastream_filter)},name) "
                f"and Thing/properties/status eq {odata_literal(ONLINE_STATUS)} "
                f"and {station_clause}",
            ),
        ],
    )


LOCATIONS_ONLINE_QUERY = locations_online_query()
