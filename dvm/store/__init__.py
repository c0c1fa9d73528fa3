"""Resource stores: the ResourceStore protocol and its implementations."""

from dvm.store.base import ResourceStore
from dvm.store.memory import MemoryStore
from dvm.store.sqlite import SqliteStore

__all__ = ["MemoryStore", "ResourceStore", "SqliteStore"]
