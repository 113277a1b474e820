"""GeoQueue Domain Models - Pydantic models for position fixes and queued points."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class GPSPosition(BaseModel):
    """GPS coordinate data from the location source."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    altitude: float | None = None  # metres above sea level
    speed: float | None = None  # m/s
    heading: float | None = None  # degrees from true north
    hdop: float | None = None  # horizontal dilution of precision
    satellites: int = 0
    fix_quality: int = 0  # 0=invalid, 1=GPS, 2=DGPS, 3=RTK
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def has_fix(self) -> bool:
        """Check if GPS has valid fix."""
        return self.fix_quality > 0 and self.satellites >= 3

    @property
    def timestamp_ms(self) -> int:
        """Fix time as integer epoch milliseconds."""
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=UTC)
        return int(ts.timestamp() * 1000)


class LocationPoint(BaseModel):
    """
    A recorded location waiting for delivery.

    Immutable once recorded. The JSON form is exactly
    ``{"latitude": .., "longitude": .., "timestamp": ..}`` with the
    timestamp in epoch milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp: int = Field(..., ge=0)

    @classmethod
    def from_position(cls, position: GPSPosition) -> LocationPoint:
        """Record a GPS fix as a queueable point."""
        return cls(
            latitude=position.latitude,
            longitude=position.longitude,
            timestamp=position.timestamp_ms,
        )

    @classmethod
    def now(cls, latitude: float, longitude: float) -> LocationPoint:
        """Record a point stamped with the current time."""
        return cls(
            latitude=latitude,
            longitude=longitude,
            timestamp=int(datetime.now(UTC).timestamp() * 1000),
        )

    def to_dict(self) -> dict[str, float | int]:
        return self.model_dump()
