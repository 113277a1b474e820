"""GeoQueue Domain Layer - Position fixes and queued location points."""

from .models import GPSPosition, LocationPoint

__all__ = [
    "GPSPosition",
    "LocationPoint",
]
