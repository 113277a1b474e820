"""Exception hierarchy shared by the queue, storage and tracking layers."""

from __future__ import annotations


class GeoQueueError(Exception):
    """Base class for all geoqueue errors."""


class PermissionDeniedError(GeoQueueError):
    """Location permission was not granted; tracking cannot start."""

    def __init__(self, scope: str, status: str) -> None:
        self.scope = scope
        self.status = status
        super().__init__(f"{scope} location permission not granted ({status})")


class StorageError(GeoQueueError):
    """Local storage could not be read or written."""


class QueueCorruptedError(StorageError):
    """The persisted queue blob is not a JSON array of location points."""
