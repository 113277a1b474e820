"""
Location Uplink for GeoQueue.
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Durable queue plus HTTP client delivering location batches to the
tracking backend.

Features:
- HTTP API client for POST /api/location
- Offline queue (store-and-forward) persisted under one storage key
"""

from .client import LocationClient
from .queue import LocationQueue, PointSender

__all__ = [
    "LocationClient",
    "LocationQueue",
    "PointSender",
]
