"""Ingestion sampler — hourly telemetry snapshot for the tracked vehicle.

Each cycle fetches one VehicleInfo document, upserts the Vehicle row by VIN
and appends a LocationSample when the coordinates pass the validity guard.
The upsert and the sample insert are committed together or not at all.

Failures never stop the loop: a 401 from the telemetry API drops the cached
token and forces a refresh, anything else is logged. Either way the loop
waits out the full interval before the next cycle.

Usage:
    sampler = Sampler(vin=settings.VIN, token_provider=TokenProvider())
    stop = threading.Event()
    sampler.run_forever(stop)
"""
from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass
from typing import Callable

import httpx
from sqlalchemy.orm import Session

from fleettrail.config import settings
from fleettrail.models.location_sample import LocationSample
from fleettrail.models.vehicle import Vehicle
from fleettrail.modules.telemetry_client import (
    TelemetrySnapshot,
    UpstreamUnauthorizedError,
    fetch_vehicle_info,
    parse_telemetry,
)
from fleettrail.modules.token_provider import TokenProvider
from fleettrail.utils.clock import utcnow
from fleettrail.utils.geo import is_valid_coordinate

logger = logging.getLogger(__name__)

CAR_PHOTO_URLS: tuple[str, ...] = (
    "https://iili.io/K91vtZQ.jpg",
    "https://iili.io/K91vbnV.jpg",
    "https://iili.io/K91vZwx.jpg",
)


@dataclass(frozen=True)
class CycleResult:
    vehicle_id: uuid.UUID
    vehicle_created: bool
    sample_written: bool


class Sampler:
    """Single-worker polling loop for one VIN."""

    def __init__(
        self,
        vin: str,
        token_provider: TokenProvider,
        session_factory: Callable[[], Session] | None = None,
        interval_seconds: float | None = None,
        rng: random.Random | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if session_factory is None:
            from fleettrail.database import SessionLocal
            session_factory = SessionLocal
        self.vin = vin
        self.token_provider = token_provider
        self.interval_seconds = (
            settings.POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self._session_factory = session_factory
        self._rng = rng or random.Random()
        self._transport = transport
        self._photo_url: str | None = None

    def photo_url(self) -> str:
        """Photo for newly created vehicles, drawn once per sampler lifetime."""
        if self._photo_url is None:
            self._photo_url = self._rng.choice(CAR_PHOTO_URLS)
        return self._photo_url

    def run_cycle(self, db: Session, vin: str) -> CycleResult:
        """Fetch, parse and persist one snapshot for *vin*.

        Raises whatever the fetch, parse or commit raised; the session is
        rolled back first so nothing from a failed cycle is persisted.
        """
        token = self.token_provider.get_token()
        with httpx.Client(
            timeout=settings.HTTP_TIMEOUT_SECONDS, transport=self._transport
        ) as client:
            doc = fetch_vehicle_info(client, vin, token)
        snapshot = parse_telemetry(doc)

        try:
            result = self._persist(db, snapshot)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Sampled VIN %s: soc=%d%% range=%d odometer=%.1f sample=%s",
            snapshot.vin,
            snapshot.battery_state_of_charge_value,
            snapshot.est_range,
            snapshot.odometer_value,
            "written" if result.sample_written else "skipped",
        )
        return result

    def _persist(self, db: Session, snapshot: TelemetrySnapshot) -> CycleResult:
        now = utcnow()
        vehicle = db.query(Vehicle).filter(Vehicle.vin == snapshot.vin).first()
        created = vehicle is None

        if created:
            vehicle = Vehicle(
                id=uuid.uuid4(),
                vin=snapshot.vin,
                name=settings.CAR_NAME,
                photo_url=self.photo_url(),
                created_at=now,
                battery_state_of_charge_value=snapshot.battery_state_of_charge_value,
                est_range=snapshot.est_range,
                odometer_value=snapshot.odometer_value,
            )
            db.add(vehicle)
            logger.info("Registered new vehicle %s (VIN %s)", vehicle.id, snapshot.vin)
        else:
            vehicle.battery_state_of_charge_value = snapshot.battery_state_of_charge_value
            vehicle.est_range = snapshot.est_range
            vehicle.odometer_value = snapshot.odometer_value

        sample_written = is_valid_coordinate(snapshot.latitude, snapshot.longitude)
        if sample_written:
            db.add(LocationSample.at(vehicle.id, snapshot.latitude, snapshot.longitude, created_at=now))
        else:
            logger.debug(
                "Dropping invalid coordinates (%r, %r) for VIN %s",
                snapshot.latitude, snapshot.longitude, snapshot.vin,
            )

        return CycleResult(vehicle_id=vehicle.id, vehicle_created=created, sample_written=sample_written)

    def run_once(self) -> CycleResult | None:
        """Run one cycle with the loop's failure policy. Returns None on failure."""
        db = self._session_factory()
        try:
            return self.run_cycle(db, self.vin)
        except UpstreamUnauthorizedError:
            logger.warning("Telemetry API rejected the token, refreshing before the next cycle")
            self.token_provider.invalidate()
            try:
                self.token_provider.force_refresh()
            except Exception:
                logger.exception("Forced token refresh failed; next cycle will sign in again")
        except Exception:
            logger.exception("Sampler cycle failed for VIN %s", self.vin)
        finally:
            db.close()
        return None

    def run_forever(self, stop_event: threading.Event) -> None:
        """Run cycles until *stop_event* is set.

        The event is only checked between cycles, so a cycle in flight
        always finishes its I/O and commit.
        """
        logger.info(
            "Sampler started for VIN %s (interval %.0fs)", self.vin, self.interval_seconds
        )
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(self.interval_seconds)
        logger.info("Sampler stopped for VIN %s", self.vin)


def start_sampler_thread(sampler: Sampler) -> tuple[threading.Thread, threading.Event]:
    """Run *sampler* on a daemon thread. Set the returned event and join to stop."""
    stop_event = threading.Event()
    thread = threading.Thread(
        target=sampler.run_forever,
        args=(stop_event,),
        name="fleettrail-sampler",
        daemon=True,
    )
    thread.start()
    return thread, stop_event
