"""
Durable Location Queue.
~~~~~~~~~~~~~~~~~~~~~~~

Store-and-forward buffer for location points when the backend is
unreachable. Points are kept as one JSON array under a single storage
key and flushed as a whole batch.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from ...domain.models import LocationPoint
from ...errors import QueueCorruptedError
from ..storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

_POINTS = TypeAdapter(list[LocationPoint])


class PointSender(Protocol):
    async def send_points(self, points: list[LocationPoint]) -> bool: ...


class LocationQueue:
    """
    Ordered, append-only queue of pending location points.

    Flush is read, send, clear: the stored array is only removed after the
    backend accepted the batch, so the key always holds either the
    pre-flush batch or nothing. Delivery is at-least-once with no dedup.

    Example:
        >>> queue = LocationQueue(store, client)
        >>> await queue.enqueue([LocationPoint.now(52.23, 21.01)])
        1
        >>> await queue.flush()
        True
    """

    def __init__(
        self,
        store: KeyValueStore,
        sender: PointSender,
        key: str = "pending-locations",
    ):
        """
        Initialize location queue.

        Args:
            store: Initialized key/value store
            sender: Anything with ``send_points`` (normally LocationClient)
            key: Storage key holding the serialized queue
        """
        self.store = store
        self.sender = sender
        self.key = key
        self._lock = asyncio.Lock()

    # ==================== Serialization ====================

    async def _load(self) -> list[LocationPoint]:
        raw = await self.store.get_item(self.key)
        if not raw:
            return []
        try:
            return _POINTS.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise QueueCorruptedError(f"queue under {self.key!r} is unreadable: {e}") from e

    async def _save(self, points: list[LocationPoint]) -> None:
        await self.store.set_item(self.key, _POINTS.dump_json(points).decode())

    # ==================== Enqueue ====================

    async def enqueue(self, points: Iterable[LocationPoint]) -> int:
        """
        Append points to the persisted queue.

        Args:
            points: New points in arrival order

        Returns:
            Queue length after the append
        """
        new_points = list(points)
        async with self._lock:
            current = await self._load()
            if not new_points:
                return len(current)

            current.extend(new_points)
            await self._save(current)

        logger.debug("Queued %d points (%d pending)", len(new_points), len(current))
        return len(current)

    # ==================== Flush ====================

    async def flush(self) -> bool:
        """
        Try to deliver the whole pending batch.

        Delivery failures, including exceptions raised by the sender, are
        not raised: the batch stays queued for the next attempt. Storage
        errors propagate.

        Returns:
            True if a batch was delivered and cleared
        """
        async with self._lock:
            batch = await self._load()
            if not batch:
                return False

            try:
                delivered = await self.sender.send_points(batch)
            except Exception as e:
                logger.warning("Flush error: %s", e)
                delivered = False

            if not delivered:
                logger.warning("Flush failed, keeping %d points queued", len(batch))
                return False

            await self.store.remove_item(self.key)

        logger.info("Flushed %d points", len(batch))
        return True

    # ==================== Inspection ====================

    async def pending(self) -> list[LocationPoint]:
        """Queued points in arrival order."""
        async with self._lock:
            return await self._load()

    async def count(self) -> int:
        """Number of queued points."""
        return len(await self.pending())

    async def clear(self) -> int:
        """Drop the queue without sending it."""
        async with self._lock:
            try:
                dropped = len(await self._load())
            except QueueCorruptedError as e:
                logger.warning("Discarding unreadable queue: %s", e)
                dropped = 0
            await self.store.remove_item(self.key)

        if dropped:
            logger.info("Dropped %d queued points", dropped)
        return dropped
