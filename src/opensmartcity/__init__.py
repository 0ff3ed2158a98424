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

"""Poll SensorThings weather stations and publish typed state"""

__version__ = "0.1.0"

from .config import BridgeConfig, WeatherConfig
from .errors import (
    ConfigurationError,
    FetchError,
    HttpStatusError,
    OpenSmartCityError,
    ParseError,
    TransportError,
)
from .handler import Bridge, WeatherHandler
from .observations import CHANNEL_HUMIDITY, CHANNEL_TEMPERATURE, fetch_latest
from .poll import PollCycle, PollState
from .resolver import nearest_station, resolve_nearest_online
from .state import LoggingStateSink, RecordingStateSink

__all__ = [
    "Bridge",
    "BridgeConfig",
    "CHANNEL_HUMIDITY",
    "CHANNEL_TEMPERATURE",
    "ConfigurationError",
    "FetchError",
    "HttpStatusError",
    "LoggingStateSink",
    "OpenSmartCityError",
    "ParseError",
    "PollCycle",
    "PollState",
    "RecordingStateSink",
    "TransportError",
    "WeatherConfig",
    "WeatherHandler",
    "fetch_latest",
    "nearest_station",
    "resolve_nearest_online",
]
