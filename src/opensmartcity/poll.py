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
The poll cycle: resolve, fetch, publish.

One PollCycle.run() call is one scheduled poll:

    IDLE -> RESOLVING -> FETCHING -> PUBLISHING
                 |            |
                 +------------+--> DEGRADED

Every run ends with exactly one status publication and never raises, so a
failing network can degrade the status but cannot stop the scheduler.
Values are only published when every configured measurement was read.
"""

from enum import Enum
from logging import getLogger, warning

from .client import SensorThingsClient
from .config import WeatherConfig
from .errors import FetchError, HttpStatusError, TransportError
from .observations import fetch_latest
from .queries import (
    LOCATIONS_ONLINE_QUERY,
    latest_observation_query,
    station_id_clause,
    station_name_clause,
)
from .registry import get_measurement
from .resolver import nearest_station, resolve_nearest_online
from .state import StateSink
from .types import (
    STAGE_FETCH,
    STAGE_RESOLVE,
    DecimalValue,
    HttpFailure,
    ParseFailure,
    PollResult,
    QuantityValue,
    ReferencePoint,
    StateValue,
    Station,
    StatusDetail,
    Success,
    TargetMeasurement,
    ThingStatus,
    TransportFailure,
)

logger = getLogger(__name__)


class PollState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    FETCHING = "fetching"
    PUBLISHING = "publishing"
    DEGRADED = "degraded"


class PollCycle:
    """
    Runs poll cycles for one reference point and publishes to one sink.

    The cycle holds no data between runs; the station list and distance index
    are local to run().

    Args:
        client: Client bound to the SensorThings deployment
        reference: Point the nearest station is measured from
        config: Handler settings (station filter mode, measurements)
        sink: Receiver of channel values and status updates
    """

    def __init__(
        self,
        client: SensorThingsClient,
        reference: ReferencePoint,
        config: WeatherConfig,
        sink: StateSink,
    ):
        self.client = client
        self.reference = reference
        self.config = config
        self.sink = sink
        self.state = PollState.IDLE

    def run(self) -> PollResult:
        """Execute one full cycle and publish its outcome."""
        try:
            result = self._execute()
        except Exception as e:
            logger.exception(f"Unexpected error during poll cycle: {e}")
            result = ParseFailure(cause=e)
        self._conclude(result)
        return result

    # ------------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------------

    def _execute(self) -> PollResult:
        self.state = PollState.RESOLVING
        try:
            index = resolve_nearest_online(
                self.reference, self.client, LOCATIONS_ONLINE_QUERY
            )
            station = nearest_station(index)
        except FetchError as e:
            warning(f"Could not resolve nearest online station: {e}")
            return _failure(e, STAGE_RESOLVE)

        logger.debug(
            f"Resolved {len(index)} online stations, nearest {station.site_name!r} "
            f"at {station.distance_km:.2f} km"
        )

        self.state = PollState.FETCHING
        values: dict[str, StateValue] = {}
        for name in self.config.measurements:
            measurement = get_measurement(name)
            if measurement is None:
                return ParseFailure(
                    cause=f"Unknown measurement {name!r}", stage=STAGE_FETCH
                )
            try:
                value = self._read(name, measurement, station)
            except FetchError as e:
                warning(f"Could not fetch {name.lower()}: {e}")
                return _failure(e, STAGE_FETCH)
            values[measurement["channel"]] = _to_state(value, measurement)

        return Success(values=values, station=station)

    def _read(
        self, name: str, measurement: TargetMeasurement, station: Station
    ) -> float:
        placeholder = measurement.get("placeholder")
        if placeholder is not None:
            return float(placeholder)

        if self.config.use_nearest_station:
            clause = station_id_clause(station.site_code)
        else:
            clause = station_name_clause(self.config.station_name)

        query = latest_observation_query(measurement["datastream_filter"], clause)
        return fetch_latest(self.client, query, name).value

    def _conclude(self, result: PollResult) -> None:
        if isinstance(result, Success):
            self.state = PollState.PUBLISHING
            for channel, value in result.values.items():
                self.sink.publish(channel, value)
            self.sink.publish_status(ThingStatus.ONLINE)
            return

        status, detail = status_for(result)
        if detail is StatusDetail.COMMUNICATION_ERROR:
            self.state = PollState.DEGRADED
        else:
            self.state = PollState.PUBLISHING
        self.sink.publish_status(status, detail)


def status_for(result: PollResult) -> tuple[ThingStatus, StatusDetail | None]:
    """
    Map a cycle outcome to the status it publishes.

    A failed station lookup is reported as a communication error whatever
    its cause; during the fetch only transport failures are. HTTP and parse
    failures of the fetch are reported as offline without a detail.
    """
    if isinstance(result, Success):
        return ThingStatus.ONLINE, None
    if getattr(result, "stage", None) == STAGE_RESOLVE:
        return ThingStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR
    if isinstance(result, TransportFailure):
        return ThingStatus.OFFLINE, StatusDetail.COMMUNICATION_ERROR
    if isinstance(result, HttpFailure):
        return ThingStatus.OFFLINE, None
    if isinstance(result, ParseFailure):
        return ThingStatus.OFFLINE, None
    return ThingStatus.OFFLINE, StatusDetail.CONFIGURATION_ERROR


def _failure(error: FetchError, stage: str) -> PollResult:
    if isinstance(error, HttpStatusError):
        return HttpFailure(status_code=error.status_code, stage=stage)
    if isinstance(error, TransportError):
        return TransportFailure(cause=error, stage=stage)
    return ParseFailure(cause=error, stage=stage)


def _to_state(value: float, measurement: TargetMeasurement) -> StateValue:
    unit = measurement.get("unit")
    if unit:
        return QuantityValue(value, unit)
    return DecimalValue(value)
