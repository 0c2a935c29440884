"""
Graph store implementations for mnemorag.

Available backends:
- SQLiteGraphStore: Local file-backed graph sharing the memory store's database
"""

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.core.graph_store.sqlite_store import SQLiteGraphStore

__all__ = [
    "GraphStore",
    "SQLiteGraphStore",
]
