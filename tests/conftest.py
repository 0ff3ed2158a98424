"""
Pytest configuration and shared fixtures.

This module provides mock SensorThings payloads and clients used across
all tests.
"""

import os

import pytest

from opensmartcity.client import SensorThingsClient
from opensmartcity.config import BridgeConfig, WeatherConfig
from opensmartcity.state import RecordingStateSink
from opensmartcity.types import ReferencePoint

BASE_URL = "https://sensors.example.org/FROST-Server"


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep OPENSMARTCITY_* variables from the developer's shell out of tests."""
    for name in list(os.environ):
        if name.startswith("OPENSMARTCITY_"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def base_url():
    """Root URL of the mocked SensorThings service."""
    return BASE_URL


@pytest.fixture
def locations_url(base_url):
    return base_url + "/v1.1/Locations"


@pytest.fixture
def datastreams_url(base_url):
    return base_url + "/v1.1/Datastreams"


@pytest.fixture
def reference():
    """Reference point used by most tests."""
    return ReferencePoint(latitude=51.0, longitude=7.0)


@pytest.fixture
def bridge_config(base_url):
    return BridgeConfig(base_url=base_url, refresh_interval=60, timeout=2.0)


@pytest.fixture
def weather_config():
    return WeatherConfig(location="51.0,7.0")


@pytest.fixture
def client(base_url):
    """Client without retries so failing requests are issued exactly once."""
    client = SensorThingsClient(base_url, timeout=2.0)
    yield client
    client.close()


@pytest.fixture
def sink():
    return RecordingStateSink()


# ============================================================================
# Mock Data for API Testing
# ============================================================================


def _location(iot_id, name, lat, lon):
    """Build a Locations entry; GeoJSON puts longitude first."""
    return {
        "@iot.id": iot_id,
        "name": name,
        "description": f"Station {name}",
        "encodingType": "application/vnd.geo+json",
        "location": {"type": "Point", "coordinates": [lon, lat]},
        "Things": [
            {
                "@iot.id": iot_id * 10 if isinstance(iot_id, int) else iot_id,
                "name": f"Weather station {name}",
                "properties": {"status": "online"},
            }
        ],
    }


def _datastream(result, name="Lufttemperatur", time="2024-05-14T10:50:00.000Z"):
    """Build a Datastreams response with one expanded Observation."""
    return {
        "@iot.count": 1,
        "value": [
            {
                "@iot.id": 501,
                "name": name,
                "unitOfMeasurement": {"name": "Grad Celsius", "symbol": "°C"},
                "Observations": [
                    {
                        "@iot.id": 90210,
                        "phenomenonTime": time,
                        "result": result,
                    }
                ],
            }
        ],
    }


@pytest.fixture
def make_location():
    """Factory for Locations entries: make_location(iot_id, name, lat, lon)."""
    return _location


@pytest.fixture
def make_datastream():
    """Factory for Datastreams responses: make_datastream(result, name, time)."""
    return _datastream


@pytest.fixture
def mock_locations_response():
    """Two online stations: one about 1.1 km from the reference, one far away."""
    return {
        "@iot.count": 2,
        "value": [
            _location(1, "Near Station", 51.01, 7.0),
            _location(2, "Far Station", 52.0, 8.0),
        ],
    }


@pytest.fixture
def mock_temperature_response():
    return _datastream(21.4)


@pytest.fixture
def mock_humidity_response():
    return _datastream(0.85, name="Luftfeuchte")
