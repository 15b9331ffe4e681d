"""Vehicle entity — one row per physical vehicle, keyed by VIN."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, Float, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from fleettrail.models.base import Base
from fleettrail.utils.clock import utcnow


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vin: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    # Set once at first sighting
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    photo_url: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    # Telemetry snapshot, overwritten every cycle
    battery_state_of_charge_value: Mapped[int] = mapped_column(Integer, nullable=False)
    est_range: Mapped[int] = mapped_column(Integer, nullable=False)
    odometer_value: Mapped[float] = mapped_column(Float, nullable=False)

    location_samples: Mapped[list["LocationSample"]] = relationship("LocationSample", back_populates="vehicle")
