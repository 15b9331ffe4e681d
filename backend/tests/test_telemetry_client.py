"""Tests for the telemetry API client — request shape, status handling, field extraction."""
from __future__ import annotations

import copy

import httpx
import pytest

from fleettrail.modules.telemetry_client import (
    TelemetryParseError,
    TelemetrySnapshot,
    UpstreamUnauthorizedError,
    fetch_vehicle_info,
    parse_telemetry,
)


def make_document(
    vin: str = "NLJT10X0000000001",
    odometer=12450.5,
    soc=87,
    est_range=312,
    lat=41.0082,
    lon=28.9784,
) -> dict:
    """A trimmed VehicleInfo document with the fields the sampler reads."""
    return {
        "vin": vin,
        "year": "2024",
        "telemetry": {
            "odometerStatus": {
                "odometerStatusContent": {"odometer": {"odometerValue": odometer, "unit": "km"}}
            },
            "battery": {
                "content": {"batteryStateOfCharge": {"batteryStateOfChargeValue": soc}}
            },
            "vehicleRange": {"content": {"estRange": {"range": est_range}}},
            "location": {
                "content": {
                    "latitude": {"latitudeValue": lat},
                    "longitude": {"longitudeValue": lon},
                }
            },
        },
        "lastTripInfo": {"myTrip": {"distance": 14}},
    }


class TestParseTelemetry:
    def test_extracts_all_fields(self):
        snap = parse_telemetry(make_document())
        assert snap == TelemetrySnapshot(
            vin="NLJT10X0000000001",
            odometer_value=12450.5,
            battery_state_of_charge_value=87,
            est_range=312,
            latitude=41.0082,
            longitude=28.9784,
        )

    def test_integer_odometer_becomes_float(self):
        snap = parse_telemetry(make_document(odometer=12450))
        assert isinstance(snap.odometer_value, float)
        assert snap.odometer_value == 12450.0

    def test_out_of_range_coordinates_still_parse(self):
        # The validity guard is the sampler's concern, not the parser's
        snap = parse_telemetry(make_document(lat=91.0))
        assert snap.latitude == 91.0

    def test_missing_vin(self):
        doc = make_document()
        del doc["vin"]
        with pytest.raises(TelemetryParseError, match="vin"):
            parse_telemetry(doc)

    @pytest.mark.parametrize("path", [
        ("telemetry", "odometerStatus"),
        ("telemetry", "battery", "content"),
        ("telemetry", "vehicleRange", "content", "estRange"),
        ("telemetry", "location", "content", "latitude"),
        ("telemetry", "location", "content", "longitude"),
    ])
    def test_missing_nested_field(self, path):
        doc = make_document()
        node = doc
        for key in path[:-1]:
            node = node[key]
        del node[path[-1]]
        with pytest.raises(TelemetryParseError, match="missing field"):
            parse_telemetry(doc)

    def test_fractional_battery_rejected(self):
        with pytest.raises(TelemetryParseError, match="batteryStateOfChargeValue"):
            parse_telemetry(make_document(soc=87.5))

    def test_boolean_range_rejected(self):
        with pytest.raises(TelemetryParseError, match="range"):
            parse_telemetry(make_document(est_range=True))

    def test_string_latitude_rejected(self):
        with pytest.raises(TelemetryParseError, match="latitudeValue"):
            parse_telemetry(make_document(lat="41.0"))

    def test_null_telemetry_rejected(self):
        doc = make_document()
        doc["telemetry"] = None
        with pytest.raises(TelemetryParseError):
            parse_telemetry(doc)

    def test_parse_error_is_value_error(self):
        assert issubclass(TelemetryParseError, ValueError)

    def test_does_not_mutate_document(self):
        doc = make_document()
        before = copy.deepcopy(doc)
        parse_telemetry(doc)
        assert doc == before


class TestFetchVehicleInfo:
    def _client(self, handler) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json=make_document())

        with self._client(handler) as client:
            doc = fetch_vehicle_info(client, "VIN123", "tok-abc")

        req = seen["request"]
        assert req.method == "GET"
        assert req.url.params["vin"] == "VIN123"
        assert req.headers["authorization"] == "Bearer tok-abc"
        assert req.headers["x-app-build-number"] == "606"
        assert req.headers["accept"] == "text/plain"
        assert doc["vin"] == "NLJT10X0000000001"

    def test_401_raises_unauthorized(self):
        with self._client(lambda r: httpx.Response(401)) as client:
            with pytest.raises(UpstreamUnauthorizedError):
                fetch_vehicle_info(client, "VIN123", "expired")

    @pytest.mark.parametrize("status", [403, 404, 500, 503])
    def test_other_errors_raise_status_error(self, status):
        with self._client(lambda r: httpx.Response(status)) as client:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                fetch_vehicle_info(client, "VIN123", "tok")
        assert exc_info.value.response.status_code == status

    def test_malformed_json_raises(self):
        with self._client(lambda r: httpx.Response(200, text="<html>oops</html>")) as client:
            with pytest.raises(ValueError):
                fetch_vehicle_info(client, "VIN123", "tok")
