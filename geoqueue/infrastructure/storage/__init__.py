"""Storage infrastructure - SQLite key/value store."""

from .kv_store import KeyValueStore

__all__ = [
    "KeyValueStore",
]
