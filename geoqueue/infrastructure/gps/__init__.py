"""GPS infrastructure - gpsd client, simulated source and update filter."""

from .distance import UpdateFilter, calculate_distance
from .gpsd_client import AsyncGPSClient, GPSState, MockGPSClient

__all__ = [
    "AsyncGPSClient",
    "GPSState",
    "MockGPSClient",
    "UpdateFilter",
    "calculate_distance",
]
