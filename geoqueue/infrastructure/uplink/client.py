"""
Location Uplink Client.
~~~~~~~~~~~~~~~~~~~~~~~

HTTP client delivering location batches to the tracking backend.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import aiohttp

from ...config import UplinkConfig
from ...domain.models import LocationPoint

logger = logging.getLogger(__name__)


class LocationClient:
    """
    HTTP client for ``POST /api/location``.

    One request per send, no retries: a failed batch is retried by the
    next flush of the queue.

    Example:
        >>> async with LocationClient(UplinkConfig(url="http://localhost:3000")) as client:
        ...     await client.send_points([LocationPoint.now(52.23, 21.01)])
        True
    """

    def __init__(self, config: UplinkConfig, device_id: str | None = None):
        """
        Initialize uplink client.

        Args:
            config: Uplink configuration
            device_id: Sent as X-Device-ID when the config does not set one
        """
        self.config = config
        self.device_id = config.device_id or device_id
        self._session: aiohttp.ClientSession | None = None

    # ==================== Connection ====================

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session and not self._session.closed:
            return

        headers = {"Content-Type": "application/json"}
        if self.device_id:
            headers["X-Device-ID"] = self.device_id

        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
        )
        logger.debug("Uplink session opened for %s", self.config.endpoint)

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    # ==================== Location API ====================

    async def send_points(self, points: Sequence[LocationPoint]) -> bool:
        """
        Deliver one batch of points.

        Args:
            points: Points in arrival order

        Returns:
            True on a 2xx response, False on any transport or HTTP failure
        """
        if not self.is_connected:
            await self.connect()
        assert self._session is not None

        body: dict[str, Any] = {"points": [p.to_dict() for p in points]}

        try:
            async with self._session.post(self.config.endpoint, json=body) as resp:
                if 200 <= resp.status < 300:
                    logger.info("Delivered %d location points", len(points))
                    return True
                text = await resp.text()
                logger.warning("Location upload rejected: %s - %s", resp.status, text[:200])
                return False

        except TimeoutError:
            logger.warning("Location upload timed out after %.1fs", self.config.timeout)
        except aiohttp.ClientError as e:
            logger.warning("Location upload failed: %s", e)

        return False

    # ==================== Context Manager ====================

    async def __aenter__(self) -> LocationClient:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()
