from __future__ import annotations

import logging
import time
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from fleettrail.database import get_db
from fleettrail.config import settings
from fleettrail.models.location_sample import LocationSample
from fleettrail.models.vehicle import Vehicle
from fleettrail.schemas.health import DataFreshnessResponse, HealthResponse
from fleettrail.schemas.trip import MovementEventRead
from fleettrail.schemas.vehicle import VehicleRead
from fleettrail.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------

@router.get("/vehicles", tags=["vehicles"], response_model=list[VehicleRead])
def list_vehicles(db: Session = Depends(get_db)):
    """All tracked vehicles with their latest telemetry snapshot."""
    return db.query(Vehicle).order_by(Vehicle.created_at, Vehicle.vin).all()


@router.get(
    "/vehicles/{vehicle_id}/trip-data",
    tags=["vehicles"],
    response_model=list[MovementEventRead],
)
def get_trip_data(
    vehicle_id: uuid.UUID,
    report_type: int = Query(0, alias="type", description="0 = daily, 1 = weekly, 2 = monthly; anything else is daily"),
    db: Session = Depends(get_db),
):
    """Movement trail for a vehicle over the selected report window.

    An unknown vehicle id yields an empty trail.
    """
    from fleettrail.modules.trip_reconstructor import reconstruct, report_window_start

    since = report_window_start(report_type)
    return reconstruct(db, vehicle_id, since)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@router.get("/health", tags=["system"], response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Health check with DB latency measurement."""
    t0 = time.time()
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        logger.warning("Health check query failed: %s", e)
        db_status = f"error: {e}"
    latency_ms = round((time.time() - t0) * 1000, 1)

    return {
        "status": "ok",
        "version": settings.VERSION,
        "database": {"status": db_status, "latency_ms": latency_ms},
    }


@router.get("/health/data-freshness", tags=["system"], response_model=DataFreshnessResponse)
def get_data_freshness(db: Session = Depends(get_db)):
    """Data freshness monitoring -- reports how old the newest location sample is."""
    now = utcnow()

    latest = db.query(func.max(LocationSample.created_at)).scalar()

    samples_24h = db.query(func.count(LocationSample.sample_id)).filter(
        LocationSample.created_at >= now - timedelta(hours=24)
    ).scalar() or 0

    vehicles = db.query(func.count(Vehicle.id)).scalar() or 0

    staleness_minutes = None
    if latest:
        staleness_minutes = round((now - latest).total_seconds() / 60, 1)

    return {
        "latest_sample_utc": latest,
        "staleness_minutes": staleness_minutes,
        "samples_last_24h": samples_24h,
        "vehicles": vehicles,
    }
