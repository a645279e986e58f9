"""Persistence package."""

from .store import (
    SnapshotStore,
    InMemorySnapshotStore,
    YamlDirectoryStore,
    serialize_state,
    deserialize_state,
)

__all__ = [
    "SnapshotStore",
    "InMemorySnapshotStore",
    "YamlDirectoryStore",
    "serialize_state",
    "deserialize_state",
]
