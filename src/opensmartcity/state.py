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
State sinks: where a poll cycle publishes channel values and status.

The handler only depends on the StateSink protocol. Two implementations are
provided: RecordingStateSink keeps an in-memory history (useful for tests and
for embedding), LoggingStateSink writes every update to the log.
"""

from dataclasses import dataclass
from logging import getLogger
from typing import Protocol

from .types import StateValue, StatusDetail, ThingStatus

logger = getLogger(__name__)


class StateSink(Protocol):
    def publish(self, channel: str, value: StateValue) -> None: ...

    def publish_status(
        self, status: ThingStatus, detail: StatusDetail | None = None
    ) -> None: ...


@dataclass(frozen=True)
class StatusUpdate:
    status: ThingStatus
    detail: StatusDetail | None = None


class RecordingStateSink:
    """Keeps every published value and status in order."""

    def __init__(self):
        self.values: list[tuple[str, StateValue]] = []
        self.statuses: list[StatusUpdate] = []

    def publish(self, channel: str, value: StateValue) -> None:
        self.values.append((channel, value))

    def publish_status(
        self, status: ThingStatus, detail: StatusDetail | None = None
    ) -> None:
        self.statuses.append(StatusUpdate(status, detail))

    @property
    def last_status(self) -> StatusUpdate | None:
        return self.statuses[-1] if self.statuses else None

    def latest(self, channel: str) -> StateValue | None:
        """Most recent value published on a channel, if any."""
        for name, value in reversed(self.values):
            if name == channel:
                return value
        return None


class LoggingStateSink:
    """Logs each update at INFO level."""

    def __init__(self, name: str = "weather"):
        self.name = name
        self.status: StatusUpdate | None = None

    def publish(self, channel: str, value: StateValue) -> None:
        logger.info(f"{self.name}#{channel} = {value}")

    def publish_status(
        self, status: ThingStatus, detail: StatusDetail | None = None
    ) -> None:
        self.status = StatusUpdate(status, detail)
        if detail is None or detail is StatusDetail.NONE:
            logger.info(f"{self.name} status: {status.value}")
        else:
            logger.info(f"{self.name} status: {status.value} ({detail.value})")
