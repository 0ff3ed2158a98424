"""
Tests for handler.py - bridge and weather handler lifecycle.
"""

import time
from unittest.mock import MagicMock

import pytest
import responses

from opensmartcity.client import basic_auth_header
from opensmartcity.config import BridgeConfig, WeatherConfig
from opensmartcity.handler import Bridge, WeatherHandler
from opensmartcity.scheduler import FixedDelayScheduler
from opensmartcity.types import ConfigFailure, StatusDetail, Success, ThingStatus


@pytest.fixture
def bridge(bridge_config, client):
    return Bridge(bridge_config, client=client)


@pytest.fixture
def scheduler():
    """Scheduler double that records calls instead of starting threads."""
    scheduler = MagicMock(spec=FixedDelayScheduler)
    job = MagicMock()
    job.cancelled = False
    job.cancel.return_value = True
    scheduler.schedule_with_fixed_delay.return_value = job
    return scheduler


@pytest.fixture
def handler(bridge, weather_config, sink, scheduler):
    return WeatherHandler(bridge, weather_config, sink, scheduler)


@pytest.fixture
def add_cycle_responses(locations_url, datastreams_url, make_datastream):
    """Register the three responses of one successful poll."""

    def add(locations):
        responses.add(responses.GET, locations_url, json=locations)
        responses.add(responses.GET, datastreams_url, json=make_datastream(21.4))
        responses.add(
            responses.GET,
            datastreams_url,
            json=make_datastream(0.85, "Luftfeuchte"),
        )

    return add


class TestBridge:
    """Test the bridge that owns the shared client."""

    def test_builds_client_from_config(self, base_url):
        config = BridgeConfig(
            base_url=base_url + "/", username="user", password="pw", timeout=3.0
        )
        bridge = Bridge(config)

        assert bridge.base_path == base_url
        assert bridge.client.timeout == 3.0
        assert bridge.client.session.headers["Authorization"] == basic_auth_header(
            "user", "pw"
        )
        assert bridge.refresh_interval == 60
        bridge.close()


class TestInitialize:
    """Test handler start-up."""

    def test_starts_fixed_delay_job(self, handler, sink, scheduler):
        assert handler.initialize() is None

        scheduler.schedule_with_fixed_delay.assert_called_once_with(
            handler.refresh, 0, 60
        )
        assert sink.statuses[-1].status is ThingStatus.ONLINE
        assert handler.refresh_job is not None

    def test_initialize_twice_keeps_one_job(self, handler, scheduler):
        handler.initialize()
        handler.initialize()

        assert scheduler.schedule_with_fixed_delay.call_count == 1

    @pytest.mark.parametrize("location", ["", "not a location"])
    def test_missing_location_is_configuration_error(
        self, bridge, sink, scheduler, location
    ):
        handler = WeatherHandler(bridge, WeatherConfig(location=location), sink, scheduler)

        result = handler.initialize()

        assert isinstance(result, ConfigFailure)
        assert sink.statuses[-1].status is ThingStatus.OFFLINE
        assert sink.statuses[-1].detail is StatusDetail.CONFIGURATION_ERROR
        scheduler.schedule_with_fixed_delay.assert_not_called()
        assert handler.refresh() is None

    def test_without_schedule(self, handler, scheduler):
        handler.initialize(schedule=False)

        scheduler.schedule_with_fixed_delay.assert_not_called()
        assert handler.refresh_job is None


class TestRefresh:
    """Test the refresh command and single polls."""

    @responses.activate
    def test_refresh_command_runs_cycle(
        self, handler, sink, add_cycle_responses, mock_locations_response
    ):
        handler.initialize()
        add_cycle_responses(mock_locations_response)

        result = handler.handle_command("REFRESH")

        assert isinstance(result, Success)
        assert sink.latest("temperature").value == 21.4

    def test_other_commands_are_ignored(self, handler):
        handler.initialize()
        assert handler.handle_command("ON") is None

    def test_refresh_before_initialize_does_nothing(self, handler, sink):
        assert handler.refresh() is None
        assert sink.statuses == []


class TestDispose:
    """Test handler shutdown."""

    def test_cancels_and_clears_job(self, handler):
        handler.initialize()
        job = handler.refresh_job

        handler.dispose()

        job.cancel.assert_called_once()
        assert handler.refresh_job is None

    def test_dispose_twice(self, handler):
        handler.initialize()
        handler.dispose()
        handler.dispose()

        assert handler.refresh_job is None

    def test_dispose_without_initialize(self, handler):
        handler.dispose()
        assert handler.refresh_job is None

    def test_reinitialize_creates_new_job(self, handler, scheduler):
        handler.initialize()
        handler.dispose()
        handler.initialize()

        assert scheduler.schedule_with_fixed_delay.call_count == 2

    @responses.activate
    def test_results_after_dispose_are_discarded(
        self, handler, sink, add_cycle_responses, mock_locations_response
    ):
        """A cycle still in flight at dispose publishes nothing."""
        handler.initialize()
        cycle = handler._cycle
        handler.dispose()
        published = len(sink.statuses)
        add_cycle_responses(mock_locations_response)

        cycle.run()

        assert len(sink.statuses) == published
        assert sink.values == []

    @responses.activate
    def test_old_cycle_cannot_publish_after_reinitialize(
        self, handler, sink, add_cycle_responses, mock_locations_response
    ):
        """A cycle from a disposed lifetime stays silent after a restart."""
        handler.initialize()
        old_cycle = handler._cycle
        handler.dispose()
        handler.initialize()
        assert handler.active
        published = len(sink.statuses)
        add_cycle_responses(mock_locations_response)

        old_cycle.run()

        assert len(sink.statuses) == published
        assert sink.values == []

    @responses.activate
    def test_new_cycle_publishes_after_reinitialize(
        self, handler, sink, add_cycle_responses, mock_locations_response
    ):
        handler.initialize()
        handler.dispose()
        handler.initialize()
        add_cycle_responses(mock_locations_response)

        result = handler.refresh()

        assert isinstance(result, Success)
        assert sink.latest("temperature").value == 21.4
        assert sink.last_status.status is ThingStatus.ONLINE

    def test_active_follows_lifetime(self, handler):
        assert not handler.active
        handler.initialize()
        assert handler.active
        handler.dispose()
        assert not handler.active


class TestScheduledPolling:
    """Test polling on a real scheduler thread."""

    @responses.activate
    def test_first_cycle_runs_immediately(
        self, bridge, weather_config, sink, add_cycle_responses, mock_locations_response
    ):
        add_cycle_responses(mock_locations_response)
        handler = WeatherHandler(bridge, weather_config, sink, FixedDelayScheduler())

        handler.initialize()
        deadline = time.monotonic() + 5.0
        while sink.latest("humidity") is None and time.monotonic() < deadline:
            time.sleep(0.01)
        job = handler.refresh_job
        handler.dispose()
        job.join(2.0)

        assert sink.latest("temperature").value == 21.4
        assert sink.latest("humidity").value == 0.85
        assert not job.is_alive()
