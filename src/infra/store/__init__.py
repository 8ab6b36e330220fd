"""RecordStorePort adapters."""

from src.infra.store.memory_store import InMemoryRecordStore
from src.infra.store.sql_store import SqlRecordStore

__all__ = [
    "InMemoryRecordStore",
    "SqlRecordStore",
]
