"""
Tests for resolver.py - nearest online station resolution.
"""

import pandas as pd
import pytest
import requests
import responses

from opensmartcity.errors import HttpStatusError, ParseError, TransportError
from opensmartcity.resolver import (
    nearest_station,
    parse_locations,
    resolve_nearest_online,
)
from opensmartcity.types import DISTANCE_COLUMNS, ReferencePoint


class TestParseLocations:
    """Test conversion of a Locations response to a DataFrame."""

    def test_swaps_geojson_coordinates(self, mock_locations_response):
        df = parse_locations(mock_locations_response)

        assert df.loc[0, "latitude"] == 51.01
        assert df.loc[0, "longitude"] == 7.0

    def test_ids_are_strings(self, mock_locations_response):
        df = parse_locations(mock_locations_response)
        assert df["site_code"].tolist() == ["1", "2"]

    def test_includes_last_entry(self, make_location):
        """Every entry is parsed, including the last one."""
        payload = {"value": [make_location(i, f"S{i}", 50.0 + i, 7.0) for i in range(3)]}
        assert len(parse_locations(payload)) == 3

    @pytest.mark.parametrize(
        "entry",
        [
            {"name": "no id", "location": {"coordinates": [7.0, 51.0]}},
            {"@iot.id": 5, "name": "no location"},
            {"@iot.id": 5, "location": {"type": "Point"}},
            {"@iot.id": 5, "location": {"coordinates": [7.0]}},
            {"@iot.id": 5, "location": {"coordinates": ["east", "north"]}},
            {"@iot.id": 5, "location": {"coordinates": [7.0, 95.0]}},
            {"@iot.id": 5, "location": "51,7"},
            "not an object",
        ],
    )
    def test_malformed_entries_are_skipped(self, make_location, entry):
        payload = {"value": [entry, make_location(9, "Good", 51.0, 7.0)]}

        df = parse_locations(payload)

        assert df["site_code"].tolist() == ["9"]

    @pytest.mark.parametrize("payload", [[], "value", {"values": []}, {"value": {}}])
    def test_wrong_top_level_shape(self, payload):
        with pytest.raises(ParseError):
            parse_locations(payload)


class TestResolveNearestOnline:
    """Test the distance index built from online stations."""

    @responses.activate
    def test_nearest_matches_hand_computed(
        self, client, reference, locations_url, mock_locations_response
    ):
        """Reference (51.0, 7.0): the station at (51.01, 7.0) is nearest."""
        responses.add(responses.GET, locations_url, json=mock_locations_response)

        index = resolve_nearest_online(reference, client)
        station = nearest_station(index)

        assert station.site_code == "1"
        assert station.site_name == "Near Station"
        assert station.distance_km == pytest.approx(1.112, abs=0.01)
        assert list(index.columns) == DISTANCE_COLUMNS

    @responses.activate
    def test_ordering_is_ascending(
        self, client, reference, locations_url, make_location
    ):
        payload = {
            "value": [
                make_location(1, "Far", 53.0, 9.0),
                make_location(2, "Middle", 52.0, 7.0),
                make_location(3, "Near", 51.1, 7.0),
                make_location(4, "Further", 54.0, 10.0),
            ]
        }
        responses.add(responses.GET, locations_url, json=payload)

        index = resolve_nearest_online(reference, client)

        assert index["site_name"].tolist() == ["Near", "Middle", "Far", "Further"]
        assert index["distance_km"].is_monotonic_increasing
        assert (index["distance_km"].iloc[0] <= index["distance_km"]).all()

    @responses.activate
    def test_ties_keep_response_order(
        self, client, reference, locations_url, make_location
    ):
        payload = {
            "value": [
                make_location("b", "Second", 52.0, 7.0),
                make_location("a", "First tie", 50.5, 7.0),
                make_location("c", "Second tie", 50.5, 7.0),
            ]
        }
        responses.add(responses.GET, locations_url, json=payload)

        index = resolve_nearest_online(reference, client)

        assert index["site_code"].tolist()[:2] == ["a", "c"]

    @responses.activate
    def test_refetches_every_call(
        self, client, reference, locations_url, make_location, mock_locations_response
    ):
        responses.add(responses.GET, locations_url, json=mock_locations_response)
        responses.add(
            responses.GET,
            locations_url,
            json={"value": [make_location(2, "Far Station", 52.0, 8.0)]},
        )

        first = nearest_station(resolve_nearest_online(reference, client))
        second = nearest_station(resolve_nearest_online(reference, client))

        assert first.site_code == "1"
        assert second.site_code == "2"
        assert len(responses.calls) == 2

    @responses.activate
    def test_empty_list_is_parse_error(self, client, reference, locations_url):
        responses.add(responses.GET, locations_url, json={"@iot.count": 0, "value": []})

        with pytest.raises(ParseError):
            resolve_nearest_online(reference, client)

    @responses.activate
    def test_all_malformed_is_parse_error(self, client, reference, locations_url):
        payload = {"value": [{"@iot.id": 1}, {"name": "x"}]}
        responses.add(responses.GET, locations_url, json=payload)

        with pytest.raises(ParseError):
            resolve_nearest_online(reference, client)

    @responses.activate
    def test_http_error(self, client, reference, locations_url):
        responses.add(responses.GET, locations_url, status=500)

        with pytest.raises(HttpStatusError) as excinfo:
            resolve_nearest_online(reference, client)
        assert excinfo.value.status_code == 500

    @responses.activate
    def test_transport_error(self, client, reference, locations_url):
        responses.add(
            responses.GET, locations_url, body=requests.exceptions.ConnectTimeout()
        )

        with pytest.raises(TransportError):
            resolve_nearest_online(reference, client)


class TestNearestStation:
    """Test selection of the nearest station."""

    def test_empty_index(self):
        with pytest.raises(ParseError):
            nearest_station(pd.DataFrame(columns=DISTANCE_COLUMNS))

    def test_first_row(self):
        index = pd.DataFrame(
            [["7", "Seven", 51.0, 7.0, 0.5], ["8", "Eight", 52.0, 8.0, 120.0]],
            columns=DISTANCE_COLUMNS,
        )
        station = nearest_station(index)

        assert station.site_code == "7"
        assert station.distance_km == 0.5
