"""
GeoQueue Background Tracking
============================

Wires the location source to the durable queue.

Each batch of accepted fixes is handled sequentially: enqueue, then flush.
Mutations of the queue are therefore serialized by the order in which
location events are dispatched.

Usage:
    task = LocationTask(queue)
    tracker = BackgroundTracker(task, MockGPSClient(), ConfigPermissionProvider(cfg.tracking))

    await tracker.start()
    await tracker.wait()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from ..config import PermissionStatus, TrackingConfig
from ..domain.models import LocationPoint
from ..errors import PermissionDeniedError
from ..infrastructure.gps.distance import UpdateFilter
from ..infrastructure.gps.gpsd_client import AsyncGPSClient
from ..infrastructure.uplink.queue import LocationQueue

logger = logging.getLogger(__name__)


class PermissionProvider(Protocol):
    async def request_foreground(self) -> PermissionStatus: ...

    async def request_background(self) -> PermissionStatus: ...


class ConfigPermissionProvider:
    """Location permissions taken from the user's opt-in in the config file."""

    def __init__(self, config: TrackingConfig) -> None:
        self.config = config

    async def request_foreground(self) -> PermissionStatus:
        return self.config.foreground_permission

    async def request_background(self) -> PermissionStatus:
        return self.config.background_permission


class LocationTask:
    """Location callback: enqueue the delivered points, then flush."""

    def __init__(self, queue: LocationQueue) -> None:
        self.queue = queue
        self.handled_count = 0

    async def handle(
        self,
        locations: Sequence[LocationPoint],
        error: BaseException | str | None = None,
    ) -> bool:
        """
        Handle one location event.

        Args:
            locations: Points delivered by the event, in arrival order
            error: Error reported by the location source instead of data

        Returns:
            True if the flush delivered a batch
        """
        if error is not None:
            logger.warning("Location event error, skipping: %s", error)
            return False

        await self.queue.enqueue(locations)
        self.handled_count += 1
        return await self.queue.flush()


class BackgroundTracker:
    """
    Runs the location source in the background and feeds LocationTask.

    Starting requires foreground and background permission; a second
    start while running is a no-op. Stopping the tracker stops the source.
    """

    def __init__(
        self,
        task: LocationTask,
        source: AsyncGPSClient,
        permissions: PermissionProvider,
        config: TrackingConfig | None = None,
    ) -> None:
        self.task = task
        self.source = source
        self.permissions = permissions
        self.config = config or TrackingConfig()
        self.update_filter = UpdateFilter(
            distance_interval_m=self.config.distance_interval_m,
            deferred_interval_ms=self.config.deferred_interval_ms,
            require_fix=self.config.require_fix,
        )
        self._runner: asyncio.Task | None = None
        self._batch: list[LocationPoint] = []

    @property
    def is_started(self) -> bool:
        return self._runner is not None and not self._runner.done()

    async def start(self, max_fixes: int | None = None) -> bool:
        """
        Request permissions and start background updates.

        Args:
            max_fixes: Stop by itself after this many accepted fixes

        Returns:
            True if tracking was started, False if it was already running

        Raises:
            PermissionDeniedError: foreground or background permission missing
        """
        fg = await self.permissions.request_foreground()
        if fg != PermissionStatus.GRANTED:
            raise PermissionDeniedError("foreground", fg.value)

        bg = await self.permissions.request_background()
        if bg != PermissionStatus.GRANTED:
            raise PermissionDeniedError("background", bg.value)

        if self.is_started:
            logger.info("Location updates already started")
            return False

        self._runner = asyncio.create_task(self.run(max_fixes))
        logger.info(
            "Location updates started (distance %.0fm, deferred %dms)",
            self.config.distance_interval_m,
            self.config.deferred_interval_ms,
        )
        return True

    async def run(self, max_fixes: int | None = None) -> int:
        """
        Consume the source until it ends or is stopped.

        Returns:
            Number of accepted fixes
        """
        accepted = 0
        async for position in self.source.stream_positions():
            if not self.update_filter.accept(position):
                continue

            accepted += 1
            self._batch.append(LocationPoint.from_position(position))
            if len(self._batch) >= self.config.batch_size:
                batch, self._batch = self._batch, []
                await self.task.handle(batch)

            if max_fixes is not None and accepted >= max_fixes:
                await self.source.stop()
                break

        await self._drain_batch()
        return accepted

    async def _drain_batch(self) -> None:
        # Partial batch: persist it so the next flush picks it up.
        if self._batch:
            batch, self._batch = self._batch, []
            await self.task.queue.enqueue(batch)

    async def wait(self) -> int:
        """Wait for the running tracker to finish; re-raises its errors."""
        if self._runner is None:
            return 0
        return await self._runner

    async def stop(self) -> None:
        """Unregister from the location source."""
        await self.source.stop()

        if self._runner:
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
            self._runner = None

        await self._drain_batch()
        logger.info("Location updates stopped")
