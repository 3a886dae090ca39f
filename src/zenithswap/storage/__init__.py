"""Session persistence: key-value stores and the versioned swap snapshot."""

from zenithswap.storage.base import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from zenithswap.storage.snapshot import (
    PersistedSnapshot,
    PersistenceAdapter,
    deserialize_snapshot,
    serialize_snapshot,
)

__all__ = [
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PersistedSnapshot",
    "PersistenceAdapter",
    "deserialize_snapshot",
    "serialize_snapshot",
]
