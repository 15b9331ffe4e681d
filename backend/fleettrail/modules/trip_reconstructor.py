"""Trip reconstruction — movement trail from raw location samples.

No trip entity is stored. A trail is derived at read time:

1. Samples are partitioned by vehicle and ordered by (created_at, sample_id).
2. Each sample is paired with the sample immediately before it. The pairing
   looks at the vehicle's whole history, not just the requested window, so
   the first in-window sample is measured against the last one before it.
3. The great-circle distance to the predecessor is computed on a sphere.
4. A sample is emitted if it has no predecessor at all (the start of the
   vehicle's history), or if it is not coordinate-identical to its
   predecessor and moved at least MIN_MOVEMENT_METERS from it.

Repeated fixes of a parked vehicle and GPS jitter therefore collapse into a
single leading point.
"""
from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional, Protocol

from sqlalchemy.orm import Session

from fleettrail.config import settings
from fleettrail.models.base import ReportTypeEnum
from fleettrail.models.location_sample import LocationSample
from fleettrail.utils.clock import as_naive_utc, utcnow
from fleettrail.utils.geo import haversine_meters

logger = logging.getLogger(__name__)

_REPORT_WINDOWS: dict[ReportTypeEnum, timedelta] = {
    ReportTypeEnum.DAILY: timedelta(days=1),
    ReportTypeEnum.WEEKLY: timedelta(days=7),
    ReportTypeEnum.MONTHLY: timedelta(days=30),
}


class SampleLike(Protocol):
    sample_id: int
    vehicle_id: uuid.UUID
    created_at: datetime
    latitude: float
    longitude: float


@dataclass(frozen=True)
class MovementEvent:
    vehicle_id: uuid.UUID
    timestamp: datetime
    latitude: float
    longitude: float
    moved_meters: Optional[float]


def report_window_start(report_type: int | None, now: datetime | None = None) -> datetime:
    """Lower time bound for a report type; unknown types fall back to daily."""
    now = now or utcnow()
    try:
        window = _REPORT_WINDOWS[ReportTypeEnum(report_type)]
    except ValueError:
        window = _REPORT_WINDOWS[ReportTypeEnum.DAILY]
    return now - window


def _order_key(sample: SampleLike) -> tuple:
    return (sample.vehicle_id, sample.created_at, sample.sample_id)


def pair_with_predecessors(
    samples: Iterable[SampleLike],
) -> Iterator[tuple[SampleLike, Optional[SampleLike]]]:
    """Yield (sample, previous sample of the same vehicle or None) in trail order."""
    ordered = sorted(samples, key=_order_key)
    for _, group in itertools.groupby(ordered, key=lambda s: s.vehicle_id):
        prev = None
        for sample in group:
            yield sample, prev
            prev = sample


def is_movement(
    sample: SampleLike,
    prev: Optional[SampleLike],
    distance_m: Optional[float],
    min_movement_m: float,
) -> bool:
    """Emission rule for one (sample, predecessor) pair."""
    if prev is None:
        return True
    if sample.latitude == prev.latitude and sample.longitude == prev.longitude:
        return False
    return distance_m is not None and distance_m >= min_movement_m


def build_trail(
    samples: Iterable[SampleLike],
    since: datetime,
    min_movement_m: float | None = None,
) -> list[MovementEvent]:
    """Filter *samples* down to movement events at or after *since*.

    *samples* must contain every predecessor needed for the window (at least
    the last sample before *since* for each vehicle); earlier samples are only
    used for pairing and never emitted.
    """
    since = as_naive_utc(since)
    threshold = settings.MIN_MOVEMENT_METERS if min_movement_m is None else min_movement_m
    events: list[MovementEvent] = []
    for sample, prev in pair_with_predecessors(samples):
        if sample.created_at < since:
            continue
        distance = None
        if prev is not None:
            distance = haversine_meters(
                prev.latitude, prev.longitude, sample.latitude, sample.longitude
            )
        if not is_movement(sample, prev, distance, threshold):
            continue
        events.append(MovementEvent(
            vehicle_id=sample.vehicle_id,
            timestamp=sample.created_at,
            latitude=sample.latitude,
            longitude=sample.longitude,
            moved_meters=distance,
        ))
    return events


def reconstruct(
    db: Session,
    vehicle_id: uuid.UUID,
    since: datetime,
    min_movement_m: float | None = None,
) -> list[MovementEvent]:
    """Movement trail for one vehicle from *since* onward.

    Loads the in-window samples plus the single sample preceding the window,
    which is all the pairing step needs.
    """
    since = as_naive_utc(since)

    anchor = (
        db.query(LocationSample)
        .filter(LocationSample.vehicle_id == vehicle_id, LocationSample.created_at < since)
        .order_by(LocationSample.created_at.desc(), LocationSample.sample_id.desc())
        .first()
    )
    in_window = (
        db.query(LocationSample)
        .filter(LocationSample.vehicle_id == vehicle_id, LocationSample.created_at >= since)
        .order_by(LocationSample.created_at, LocationSample.sample_id)
        .all()
    )
    samples = ([anchor] if anchor is not None else []) + list(in_window)

    events = build_trail(samples, since, min_movement_m)
    logger.debug(
        "Trail for vehicle %s since %s: %d samples -> %d events",
        vehicle_id, since.isoformat(), len(samples), len(events),
    )
    return events
