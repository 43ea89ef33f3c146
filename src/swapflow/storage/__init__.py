"""Persisted key/value storage."""

from swapflow.storage.database import create_engine, create_session_factory, init_db
from swapflow.storage.kv_store import KeyValueStore, MemoryKeyValueStore, SqlKeyValueStore
from swapflow.storage.models import Base, KeyValueEntry

__all__ = [
    "Base",
    "KeyValueEntry",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "create_engine",
    "create_session_factory",
    "init_db",
]
