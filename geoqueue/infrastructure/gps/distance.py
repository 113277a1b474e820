"""
GPS Update Filter
=================

Decides which fixes are worth recording. A fix is accepted when it is the
first one, when it moved far enough from the last accepted fix, or when
enough time passed since the last accepted fix.

Usage:
    update_filter = UpdateFilter(distance_interval_m=50, deferred_interval_ms=60000)

    for position in gps_stream:
        if update_filter.accept(position):
            queue_it(position)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ...domain.models import GPSPosition

EARTH_RADIUS_M = 6371000


@dataclass
class UpdateFilter:
    """Distance/time trigger for location updates."""

    distance_interval_m: float = 50.0
    deferred_interval_ms: int = 60000
    require_fix: bool = True
    accepted_count: int = 0
    dropped_count: int = 0
    last_accepted: Optional[GPSPosition] = None

    def accept(self, position: GPSPosition) -> bool:
        """
        Check a fix against the trigger and remember it when accepted.

        Args:
            position: Fix from the location source

        Returns:
            True if the fix should be recorded
        """
        if self.require_fix and not position.has_fix:
            self.dropped_count += 1
            return False

        last = self.last_accepted
        if last is not None:
            moved = calculate_distance(
                last.latitude, last.longitude, position.latitude, position.longitude
            )
            elapsed_ms = position.timestamp_ms - last.timestamp_ms
            if moved < self.distance_interval_m and elapsed_ms < self.deferred_interval_ms:
                self.dropped_count += 1
                return False

        self.last_accepted = position
        self.accepted_count += 1
        return True

    def reset(self) -> None:
        """Forget the last accepted fix."""
        self.last_accepted = None
        self.accepted_count = 0
        self.dropped_count = 0


def calculate_distance(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """
    Calculate distance between two points using Haversine formula.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c
