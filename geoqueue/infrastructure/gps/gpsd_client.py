"""Async gpsd client with auto-reconnect, plus a simulated source for development."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import AsyncIterator, Optional

from ...config import GPSConfig
from ...domain.models import GPSPosition

logger = logging.getLogger(__name__)


@dataclass
class GPSState:
    """Internal GPS state tracking."""

    connected: bool = False
    fix_count: int = 0
    error_count: int = 0
    last_fix: Optional[datetime] = None
    satellites: int = 0


class AsyncGPSClient:
    """
    Async gpsd client with auto-reconnect.

    Usage:
        client = AsyncGPSClient(GPSConfig())

        async for position in client.stream_positions():
            print(f"Lat: {position.latitude}, Lon: {position.longitude}")
    """

    def __init__(self, config: GPSConfig | None = None) -> None:
        self.config = config or GPSConfig()
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._running = False
        self._position: Optional[GPSPosition] = None
        self._state = GPSState()
        self._reconnect_attempts = 0

    @property
    def position(self) -> Optional[GPSPosition]:
        """Get last known GPS position."""
        return self._position

    @property
    def is_connected(self) -> bool:
        return self._state.connected

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> GPSState:
        """Get internal state for diagnostics."""
        return self._state

    async def connect(self) -> bool:
        """
        Connect to gpsd daemon.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=self.config.timeout,
            )

            # Enable JSON streaming mode
            self._writer.write(b'?WATCH={"enable":true,"json":true}\n')
            await self._writer.drain()

            self._state.connected = True
            self._reconnect_attempts = 0
            logger.info("Connected to gpsd at %s:%d", self.config.host, self.config.port)
            return True

        except asyncio.TimeoutError:
            logger.warning("GPS connection timeout to %s:%d", self.config.host, self.config.port)
        except ConnectionRefusedError:
            logger.warning("GPS connection refused - is gpsd running?")
        except OSError as e:
            logger.warning("GPS connection failed: %s", e)

        self._state.error_count += 1
        return False

    async def disconnect(self) -> None:
        """Disconnect from gpsd."""
        if self._writer:
            try:
                self._writer.write(b'?WATCH={"enable":false}\n')
                await self._writer.drain()
                self._writer.close()
                await self._writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("GPS disconnect error: %s", e)

        self._reader = None
        self._writer = None
        self._state.connected = False

    async def stream_positions(self) -> AsyncIterator[GPSPosition]:
        """
        Async generator that yields GPS positions.

        Handles reconnection automatically; stops after
        ``max_reconnect_attempts`` consecutive failed connects (0 = never).

        Yields:
            GPSPosition objects parsed from TPV reports
        """
        self._running = True

        while self._running:
            if not self._reader:
                if not await self.connect():
                    self._reconnect_attempts += 1

                    if (
                        self.config.max_reconnect_attempts > 0
                        and self._reconnect_attempts >= self.config.max_reconnect_attempts
                    ):
                        logger.error("GPS max reconnect attempts reached, stopping")
                        break

                    await asyncio.sleep(self.config.reconnect_delay)
                    continue

            try:
                line = await asyncio.wait_for(
                    self._reader.readline(),  # type: ignore[union-attr]
                    timeout=self.config.timeout,
                )

                if not line:
                    raise ConnectionError("GPS connection closed by server")

                data = json.loads(line.decode("utf-8"))

                # TPV = Time-Position-Velocity
                if data.get("class") == "TPV":
                    pos = self._parse_tpv(data)
                    if pos:
                        self._position = pos
                        self._state.fix_count += 1
                        self._state.last_fix = datetime.now(UTC)
                        yield pos

                elif data.get("class") == "SKY":
                    self._state.satellites = len(data.get("satellites", []))

            except asyncio.TimeoutError:
                logger.debug("GPS read timeout, connection still alive")

            except json.JSONDecodeError as e:
                logger.warning("GPS JSON parse error: %s", e)

            except (ConnectionError, OSError) as e:
                logger.warning("GPS stream error: %s, reconnecting...", e)
                self._state.error_count += 1
                await self.disconnect()
                await asyncio.sleep(self.config.reconnect_delay)

    def _parse_tpv(self, data: dict) -> Optional[GPSPosition]:
        """
        Parse TPV message from gpsd.

        Args:
            data: JSON dict from gpsd TPV message

        Returns:
            GPSPosition if valid lat/lon present, None otherwise
        """
        if "lat" not in data or "lon" not in data:
            return None

        try:
            # Mode: 0=unknown, 1=no fix, 2=2D, 3=3D
            mode = int(data.get("mode", 0))
            fields = {
                "latitude": float(data["lat"]),
                "longitude": float(data["lon"]),
                "altitude": data.get("alt"),
                "speed": data.get("speed"),
                "heading": data.get("track"),
                "hdop": data.get("hdop"),
                "fix_quality": max(0, mode - 1),
                "satellites": self._state.satellites,
            }
            if data.get("time"):
                fields["timestamp"] = datetime.fromisoformat(data["time"].replace("Z", "+00:00"))
            return GPSPosition(**fields)

        except (KeyError, ValueError, TypeError) as e:
            logger.error("TPV parse error: %s - data: %s", e, data)
            return None

    async def stop(self) -> None:
        """Stop streaming and disconnect."""
        self._running = False
        await self.disconnect()


class MockGPSClient(AsyncGPSClient):
    """
    Simulated GPS source.

    Walks a circle of ~111 m radius around the start point, one fix every
    ``interval`` seconds.
    """

    def __init__(
        self,
        start_lat: float = 52.2297,
        start_lon: float = 21.0122,
        interval: float = 1.0,
    ) -> None:
        super().__init__()
        self._start_lat = start_lat
        self._start_lon = start_lon
        self._interval = interval
        self._step = 0

    @classmethod
    def from_config(cls, config: GPSConfig) -> MockGPSClient:
        return cls(config.mock_lat, config.mock_lon, config.mock_interval)

    async def connect(self) -> bool:
        self._state.connected = True
        logger.info("Mock GPS connected (simulated)")
        return True

    async def stream_positions(self) -> AsyncIterator[GPSPosition]:
        await self.connect()
        self._running = True

        while self._running:
            angle = math.radians(self._step * 5)
            radius = 0.001

            pos = GPSPosition(
                latitude=self._start_lat + radius * math.sin(angle),
                longitude=self._start_lon + radius * math.cos(angle),
                altitude=100.0,
                speed=1.0,
                heading=float(self._step * 5 % 360),
                satellites=8,
                fix_quality=2,
            )

            self._position = pos
            self._state.fix_count += 1
            self._step += 1

            yield pos
            await asyncio.sleep(self._interval)
