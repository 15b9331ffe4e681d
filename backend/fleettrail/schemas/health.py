"""Health and data-freshness response schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class DatabaseStatus(BaseModel):
    status: str
    latency_ms: float


class HealthResponse(BaseModel):
    status: str
    version: str
    database: DatabaseStatus


class DataFreshnessResponse(BaseModel):
    latest_sample_utc: Optional[datetime] = None
    staleness_minutes: Optional[float] = None
    samples_last_24h: int
    vehicles: int
