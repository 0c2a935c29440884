"""Memory store: raw memory records consumed by graph builds."""

from mnemorag.core.memory_store.base import MemoryStore
from mnemorag.core.memory_store.sqlite_store import SQLiteMemoryStore

__all__ = ["MemoryStore", "SQLiteMemoryStore"]
