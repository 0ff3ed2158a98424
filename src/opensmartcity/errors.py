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
Exception hierarchy for OpenSmartCity.

Collaborators raise these; the poll cycle catches them and turns them into
status updates, so none of them ever reaches the scheduler.
"""


class OpenSmartCityError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(OpenSmartCityError):
    """Mandatory configuration is missing or cannot be parsed."""


class FetchError(OpenSmartCityError):
    """A request to the SensorThings API did not yield usable data."""


class HttpStatusError(FetchError):
    """The API answered with a status code other than 200."""

    def __init__(self, status_code: int, url: str = "", reason: str = ""):
        self.status_code = status_code
        self.url = url
        self.reason = reason
        super().__init__(f"HTTP {status_code} {reason}: {url}".strip())


class TransportError(FetchError):
    """The request failed before a response arrived (timeout, DNS, refused)."""


class ParseError(FetchError):
    """The response body is not shaped the way the query promises."""


# Names used in the error taxonomy of the binding
ProtocolError = HttpStatusError
CommunicationError = TransportError
