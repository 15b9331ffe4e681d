"""LocationSample entity — one position fix per successful ingestion cycle."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Integer, Float, DateTime, ForeignKey, Uuid, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleettrail.models.base import Base, PointGeometry
from fleettrail.utils.geo import point_element
from fleettrail.utils.clock import utcnow


class LocationSample(Base):
    __tablename__ = "location_samples"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_sample_lat_bounds"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_sample_lon_bounds"),
        Index("ix_location_samples_vehicle_ts", "vehicle_id", "created_at"),
    )

    # Autoincrement so insertion order breaks timestamp ties
    sample_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("vehicles.id"), nullable=False, index=True
    )
    # Ingestion time, not device time
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    geom: Mapped[object] = mapped_column(PointGeometry, nullable=False)

    vehicle: Mapped["Vehicle"] = relationship("Vehicle", back_populates="location_samples")

    @classmethod
    def at(
        cls,
        vehicle_id: uuid.UUID,
        latitude: float,
        longitude: float,
        created_at: datetime | None = None,
    ) -> "LocationSample":
        """Build a sample whose scalar pair and geometry come from the same input."""
        return cls(
            vehicle_id=vehicle_id,
            created_at=created_at or utcnow(),
            latitude=latitude,
            longitude=longitude,
            geom=point_element(latitude, longitude),
        )
