"""Shared declarative base, enums and column types for all models."""
from __future__ import annotations

import enum

from geoalchemy2 import Geometry
from geoalchemy2.elements import WKTElement
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    pass


class ReportTypeEnum(int, enum.Enum):
    DAILY = 0
    WEEKLY = 1
    MONTHLY = 2


class PointGeometry(TypeDecorator):
    """POINT geometry in EPSG:4326.

    PostGIS stores a real ``geometry(POINT, 4326)`` column. Other dialects
    (SQLite in tests and local dev) keep the EWKT text so the row still
    carries the geometry written alongside its scalar coordinates.
    """

    impl = String(128)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Geometry("POINT", srid=4326, spatial_index=False))
        return dialect.type_descriptor(String(128))

    def process_bind_param(self, value, dialect):
        if isinstance(value, WKTElement):
            return f"SRID={value.srid};{value.data}"
        return value
