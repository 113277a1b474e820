"""
Tests for the durable location queue.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import aiohttp
import pytest
import pytest_asyncio

from geoqueue.domain.models import LocationPoint
from geoqueue.errors import QueueCorruptedError, StorageError
from geoqueue.infrastructure.storage.kv_store import KeyValueStore
from geoqueue.infrastructure.uplink.queue import LocationQueue


class FakeSender:
    """Records every batch; delivery succeeds while ``online`` is True."""

    def __init__(self, online: bool = True):
        self.online = online
        self.batches: list[list[LocationPoint]] = []

    async def send_points(self, points):
        self.batches.append(list(points))
        return self.online


def make_points(n: int, start: int = 0) -> list[LocationPoint]:
    return [
        LocationPoint(latitude=52.0 + i * 0.001, longitude=21.0, timestamp=1_700_000_000_000 + i)
        for i in range(start, start + n)
    ]


@pytest_asyncio.fixture
async def store():
    with tempfile.TemporaryDirectory() as tmpdir:
        kv = KeyValueStore(Path(tmpdir) / "queue.db")
        await kv.initialize()
        yield kv
        await kv.close()


@pytest.mark.asyncio
async def test_enqueue_appends_in_arrival_order(store):
    queue = LocationQueue(store, FakeSender())

    assert await queue.enqueue(make_points(2)) == 2
    assert await queue.enqueue(make_points(3, start=2)) == 5

    pending = await queue.pending()
    assert [p.timestamp for p in pending] == [1_700_000_000_000 + i for i in range(5)]


@pytest.mark.asyncio
async def test_enqueue_empty_is_noop(store):
    queue = LocationQueue(store, FakeSender())

    assert await queue.enqueue([]) == 0
    assert await store.get_item(queue.key) is None


@pytest.mark.asyncio
async def test_queue_is_single_json_array_under_one_key(store):
    queue = LocationQueue(store, FakeSender(), key="pending-locations")
    await queue.enqueue(make_points(2))

    assert await store.keys() == ["pending-locations"]
    raw = json.loads(await store.get_item("pending-locations"))
    assert raw[0] == {"latitude": 52.0, "longitude": 21.0, "timestamp": 1_700_000_000_000}
    assert len(raw) == 2


@pytest.mark.asyncio
async def test_failed_flush_keeps_all_points(store):
    sender = FakeSender(online=False)
    queue = LocationQueue(store, sender)
    await queue.enqueue(make_points(7))

    assert await queue.flush() is False
    assert await queue.count() == 7
    assert len(sender.batches) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [1, 25, 500])
async def test_successful_flush_empties_queue(store, size):
    sender = FakeSender()
    queue = LocationQueue(store, sender)
    await queue.enqueue(make_points(size))

    assert await queue.flush() is True
    assert await queue.count() == 0
    assert await store.get_item(queue.key) is None
    assert len(sender.batches[0]) == size


@pytest.mark.asyncio
async def test_flush_sends_batch_in_arrival_order(store):
    sender = FakeSender()
    queue = LocationQueue(store, sender)
    points = make_points(4)
    for point in points:
        await queue.enqueue([point])

    await queue.flush()

    assert sender.batches == [points]


@pytest.mark.asyncio
async def test_repeated_failed_flushes_never_duplicate_or_drop(store):
    sender = FakeSender(online=False)
    queue = LocationQueue(store, sender)
    first = make_points(3)
    await queue.enqueue(first)

    for _ in range(5):
        await queue.flush()

    assert await queue.pending() == first

    # New arrivals between failed attempts are appended after the old batch
    more = make_points(2, start=3)
    await queue.enqueue(more)
    await queue.flush()
    assert await queue.pending() == first + more

    # Every attempt resent the same (growing) batch
    assert all(batch[:3] == first for batch in sender.batches)

    sender.online = True
    assert await queue.flush() is True
    assert sender.batches[-1] == first + more
    assert await queue.count() == 0


@pytest.mark.asyncio
async def test_flush_empty_queue_does_not_send(store):
    sender = FakeSender()
    queue = LocationQueue(store, sender)

    assert await queue.flush() is False
    assert sender.batches == []


@pytest.mark.asyncio
async def test_sender_exception_is_swallowed(store):
    sender = AsyncMock()
    sender.send_points = AsyncMock(side_effect=aiohttp.ClientConnectionError("offline"))
    queue = LocationQueue(store, sender)
    await queue.enqueue(make_points(2))

    assert await queue.flush() is False
    assert await queue.count() == 2


@pytest.mark.asyncio
async def test_queue_survives_reopen():
    with tempfile.TemporaryDirectory() as tmpdir:
        db = Path(tmpdir) / "queue.db"
        async with KeyValueStore(db) as kv:
            await LocationQueue(kv, FakeSender(online=False)).enqueue(make_points(3))

        async with KeyValueStore(db) as kv:
            assert await LocationQueue(kv, FakeSender()).count() == 3


@pytest.mark.asyncio
async def test_corrupted_queue_raises(store):
    queue = LocationQueue(store, FakeSender())
    await store.set_item(queue.key, '{"not": "a list"}')

    with pytest.raises(QueueCorruptedError):
        await queue.pending()
    with pytest.raises(StorageError):
        await queue.enqueue(make_points(1))


@pytest.mark.asyncio
async def test_clear_drops_queue(store):
    sender = FakeSender()
    queue = LocationQueue(store, sender)
    await queue.enqueue(make_points(4))

    assert await queue.clear() == 4
    assert await queue.count() == 0
    assert sender.batches == []


@pytest.mark.asyncio
async def test_clear_discards_corrupted_queue(store):
    queue = LocationQueue(store, FakeSender())
    await store.set_item(queue.key, "garbage")

    assert await queue.clear() == 0
    assert await queue.pending() == []


@pytest.mark.asyncio
async def test_storage_failure_propagates_from_flush(store):
    queue = LocationQueue(store, FakeSender())
    await queue.enqueue(make_points(1))
    await store.close()

    with pytest.raises(StorageError):
        await queue.flush()
