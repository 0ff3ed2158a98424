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
Bridge and weather handler lifecycle.

The Bridge owns the connection settings and the shared HTTP client. A
WeatherHandler binds a reference location to a bridge, validates its
configuration when initialised, runs a PollCycle on a fixed-delay schedule
and stops it again when disposed.
"""

import threading
from logging import getLogger

from .client import SensorThingsClient
from .config import BridgeConfig, WeatherConfig
from .errors import ConfigurationError
from .geo import parse_reference_point
from .poll import PollCycle
from .scheduler import FixedDelayScheduler, ScheduledJob
from .state import StateSink
from .types import (
    ConfigFailure,
    PollResult,
    StateValue,
    StatusDetail,
    ThingStatus,
)

logger = getLogger(__name__)

REFRESH = "REFRESH"


class Bridge:
    """Connection to one SensorThings deployment, shared by its handlers."""

    def __init__(self, config: BridgeConfig, client: SensorThingsClient | None = None):
        self.config = config
        self.client = client or SensorThingsClient(
            config.base_url,
            username=config.username,
            password=config.password,
            timeout=config.timeout,
            retry_attempts=config.retry_attempts,
        )

    @property
    def base_path(self) -> str:
        return self.client.base_url

    @property
    def refresh_interval(self) -> int:
        return self.config.refresh_interval

    def close(self) -> None:
        self.client.close()


class _ActiveSink:
    """
    Forwards updates to the real sink while one handler lifetime lasts.

    Each initialize() creates a new lifetime, so a cycle started before
    dispose() cannot publish into a later lifetime.
    """

    def __init__(self, lifetime: threading.Event, sink: StateSink):
        self._lifetime = lifetime
        self._sink = sink

    def publish(self, channel: str, value: StateValue) -> None:
        if self._lifetime.is_set():
            self._sink.publish(channel, value)

    def publish_status(
        self, status: ThingStatus, detail: StatusDetail | None = None
    ) -> None:
        if self._lifetime.is_set():
            self._sink.publish_status(status, detail)


class WeatherHandler:
    """
    Publishes temperature and humidity of the nearest online station.

    Args:
        bridge: Bridge providing the base URL, client and refresh interval
        config: Handler settings; location is mandatory
        sink: Receiver of channel values and status updates
        scheduler: Scheduler for the refresh job (a private one by default)

    Example:
        >>> handler = WeatherHandler(bridge, WeatherConfig(location="51.17,7.08"), sink)
        >>> handler.initialize()
        >>> ...
        >>> handler.dispose()
    """

    def __init__(
        self,
        bridge: Bridge,
        config: WeatherConfig,
        sink: StateSink,
        scheduler: FixedDelayScheduler | None = None,
    ):
        self.bridge = bridge
        self.config = config
        self.sink = sink
        self.scheduler = scheduler or FixedDelayScheduler()
        self.refresh_job: ScheduledJob | None = None
        self._lifetime: threading.Event | None = None
        self._cycle: PollCycle | None = None
        self._running = threading.Lock()

    @property
    def active(self) -> bool:
        return self._lifetime is not None and self._lifetime.is_set()

    def initialize(self, schedule: bool = True) -> PollResult | None:
        """
        Validate configuration and start the refresh job.

        With schedule=False no job is started; cycles then only run through
        refresh() or handle_command("REFRESH").

        Returns:
            ConfigFailure if the reference location is missing or invalid,
            None otherwise
        """
        try:
            reference = parse_reference_point(self.config.location)
        except ConfigurationError as e:
            logger.debug(
                f"Geo location is mandatory and has to be set, disabling handler: {e}"
            )
            self.sink.publish_status(
                ThingStatus.OFFLINE, StatusDetail.CONFIGURATION_ERROR
            )
            return ConfigFailure(cause=e)

        if self._lifetime is not None:
            self._lifetime.clear()
        self._lifetime = threading.Event()
        self._lifetime.set()
        self.sink.publish_status(ThingStatus.ONLINE)
        self._cycle = PollCycle(
            self.bridge.client,
            reference,
            self.config,
            _ActiveSink(self._lifetime, self.sink),
        )

        job = self.refresh_job
        if schedule and (job is None or job.cancelled):
            logger.info(
                f"Start refresh job at interval {self.bridge.refresh_interval} seconds."
            )
            self.refresh_job = self.scheduler.schedule_with_fixed_delay(
                self.refresh, 0, self.bridge.refresh_interval
            )
        return None

    def handle_command(self, command: str) -> PollResult | None:
        """Only REFRESH is supported: it runs one cycle immediately."""
        if command.upper() == REFRESH:
            return self.refresh()
        logger.debug(f"Ignoring unsupported command {command!r}")
        return None

    def refresh(self) -> PollResult | None:
        """Run one poll cycle; does nothing before initialize()/after dispose()."""
        cycle = self._cycle
        if cycle is None or not self.active:
            return None
        # A manual refresh must not overlap a scheduled run
        if not self._running.acquire(blocking=False):
            logger.debug("Poll cycle already running, skipping refresh")
            return None
        try:
            return cycle.run()
        finally:
            self._running.release()

    def dispose(self) -> None:
        """Stop the refresh job. Safe to call more than once."""
        logger.debug("Dispose weather handler.")
        if self._lifetime is not None:
            self._lifetime.clear()
        job = self.refresh_job
        if job is not None:
            if job.cancel():
                logger.info("Stop refresh job.")
            self.refresh_job = None
        self._cycle = None
