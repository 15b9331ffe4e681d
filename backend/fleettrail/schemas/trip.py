"""Pydantic schemas for derived trip trails."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MovementEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    vehicle_id: uuid.UUID
    timestamp: datetime
    latitude: float
    longitude: float
    # None for the first sample in the vehicle's history
    moved_meters: Optional[float] = None
