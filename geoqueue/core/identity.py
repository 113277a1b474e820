"""Per-install device identity."""

from __future__ import annotations

import logging
import uuid

from ..infrastructure.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "trackingUserId"


async def get_or_create_device_id(store: KeyValueStore, key: str = DEVICE_ID_KEY) -> str:
    """Return the stored device id, generating and persisting one on first use."""
    device_id = await store.get_item(key)
    if device_id:
        return device_id

    device_id = str(uuid.uuid4())
    await store.set_item(key, device_id)
    logger.info("Generated device id %s", device_id)
    return device_id
