"""Pydantic schemas for the Vehicle entity — camelCase on the wire for the dashboard."""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class VehicleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: uuid.UUID
    vin: str
    name: str
    photo_url: str
    created_at: datetime
    battery_state_of_charge_value: int
    est_range: int
    odometer_value: float
