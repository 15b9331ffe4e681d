"""Vehicle telemetry API client — one VehicleInfo document per request.

Fetches the upstream telemetry document for a VIN and extracts the fields
the sampler persists. Field paths are fixed; a missing or mistyped value
fails the whole document.

Usage:
    from fleettrail.modules.telemetry_client import fetch_vehicle_info, parse_telemetry
    with httpx.Client(timeout=30.0) as client:
        snapshot = parse_telemetry(fetch_vehicle_info(client, vin, token))
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from fleettrail.config import settings

logger = logging.getLogger(__name__)

_ODOMETER_PATH = ("telemetry", "odometerStatus", "odometerStatusContent", "odometer", "odometerValue")
_BATTERY_SOC_PATH = ("telemetry", "battery", "content", "batteryStateOfCharge", "batteryStateOfChargeValue")
_EST_RANGE_PATH = ("telemetry", "vehicleRange", "content", "estRange", "range")
_LATITUDE_PATH = ("telemetry", "location", "content", "latitude", "latitudeValue")
_LONGITUDE_PATH = ("telemetry", "location", "content", "longitude", "longitudeValue")


class UpstreamUnauthorizedError(Exception):
    """The telemetry API rejected the bearer token (HTTP 401)."""


class TelemetryParseError(ValueError):
    """A required field is missing from the telemetry document or has the wrong type."""


@dataclass(frozen=True)
class TelemetrySnapshot:
    vin: str
    odometer_value: float
    battery_state_of_charge_value: int
    est_range: int
    latitude: float
    longitude: float


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "x-app-build-number": settings.TELEMETRY_APP_BUILD_NUMBER,
        "accept": "text/plain",
    }


def fetch_vehicle_info(client: httpx.Client, vin: str, token: str) -> dict:
    """GET the telemetry document for *vin*.

    Raises:
        UpstreamUnauthorizedError: on HTTP 401.
        httpx.HTTPStatusError: on any other non-2xx status.
        httpx.TransportError: on network failures and timeouts.
    """
    resp = client.get(
        settings.TELEMETRY_API_URL,
        params={"vin": vin},
        headers=_headers(token),
    )
    if resp.status_code == 401:
        raise UpstreamUnauthorizedError(f"telemetry API returned 401 for VIN {vin}")
    resp.raise_for_status()
    return resp.json()


def _dig(doc: Any, path: tuple[str, ...]) -> Any:
    node = doc
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise TelemetryParseError(f"missing field {'.'.join(path)}")
        node = node[key]
    return node


def _as_int(value: Any, path: tuple[str, ...]) -> int:
    # bool is an int subclass; JSON true/false is not a number
    if isinstance(value, bool) or not isinstance(value, int):
        raise TelemetryParseError(f"{'.'.join(path)} is not an integer: {value!r}")
    return value


def _as_float(value: Any, path: tuple[str, ...]) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TelemetryParseError(f"{'.'.join(path)} is not a number: {value!r}")
    return float(value)


def parse_telemetry(doc: dict) -> TelemetrySnapshot:
    """Extract a :class:`TelemetrySnapshot` from an upstream VehicleInfo document."""
    vin = _dig(doc, ("vin",))
    if not isinstance(vin, str) or not vin:
        raise TelemetryParseError(f"vin is not a non-empty string: {vin!r}")

    return TelemetrySnapshot(
        vin=vin,
        odometer_value=_as_float(_dig(doc, _ODOMETER_PATH), _ODOMETER_PATH),
        battery_state_of_charge_value=_as_int(_dig(doc, _BATTERY_SOC_PATH), _BATTERY_SOC_PATH),
        est_range=_as_int(_dig(doc, _EST_RANGE_PATH), _EST_RANGE_PATH),
        latitude=_as_float(_dig(doc, _LATITUDE_PATH), _LATITUDE_PATH),
        longitude=_as_float(_dig(doc, _LONGITUDE_PATH), _LONGITUDE_PATH),
    )
