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
Fixed-delay scheduling on a background thread.

The next run is scheduled relative to the completion of the previous one,
so runs of the same job never overlap. Cancelling is non-blocking: a run in
progress is allowed to finish, but no further run starts.
"""

import threading
from logging import getLogger
from typing import Callable

logger = getLogger(__name__)


class ScheduledJob:
    """Cancellable handle for a callback repeated with a fixed delay."""

    def __init__(
        self,
        callback: Callable[[], object],
        initial_delay: float,
        period: float,
        name: str = "opensmartcity-job",
    ):
        if period <= 0:
            raise ValueError(f"Period must be positive, got {period}")

        self.callback = callback
        self.initial_delay = max(0.0, initial_delay)
        self.period = period
        self.runs = 0
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "ScheduledJob":
        self._thread.start()
        return self

    def _run(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            try:
                self.callback()
            except Exception:
                # A failing callback must not end the schedule
                logger.exception("Scheduled callback raised")
            self.runs += 1
            if self._stop.wait(self.period):
                return

    def cancel(self) -> bool:
        """
        Stop future runs.

        Returns:
            bool: True if this call cancelled the job, False if it already was
        """
        if self._stop.is_set():
            return False
        self._stop.set()
        return True

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread to exit (after cancel())."""
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)


class FixedDelayScheduler:
    """Creates ScheduledJobs and cancels all of them on shutdown."""

    def __init__(self):
        self._jobs: list[ScheduledJob] = []
        self._lock = threading.Lock()

    def schedule_with_fixed_delay(
        self,
        callback: Callable[[], object],
        initial_delay: float,
        period: float,
    ) -> ScheduledJob:
        """
        Run callback after initial_delay seconds, then period seconds after
        each run completes.
        """
        job = ScheduledJob(callback, initial_delay, period)
        with self._lock:
            self._jobs = [j for j in self._jobs if not j.cancelled]
            self._jobs.append(job)
        logger.debug(f"Scheduled job every {period}s after {initial_delay}s")
        return job.start()

    def shutdown(self) -> None:
        with self._lock:
            jobs, self._jobs = self._jobs, []
        for job in jobs:
            job.cancel()
