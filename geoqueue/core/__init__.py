"""GeoQueue Core - Background tracking and device identity."""

from .identity import get_or_create_device_id
from .tracking import (
    BackgroundTracker,
    ConfigPermissionProvider,
    LocationTask,
    PermissionProvider,
)

__all__ = [
    # Tracking
    "BackgroundTracker",
    "ConfigPermissionProvider",
    "LocationTask",
    "PermissionProvider",
    # Identity
    "get_or_create_device_id",
]
