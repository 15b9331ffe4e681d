"""Import all models to register them with SQLAlchemy metadata."""
from fleettrail.models.base import Base
from fleettrail.models.vehicle import Vehicle
from fleettrail.models.location_sample import LocationSample

__all__ = [
    "Base",
    "Vehicle",
    "LocationSample",
]
