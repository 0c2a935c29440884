"""Vector store implementations for mnemorag."""

from mnemorag.core.vector_store.base import VectorSearchResult, VectorStore
from mnemorag.core.vector_store.qdrant import QdrantStore

__all__ = ["VectorStore", "VectorSearchResult", "QdrantStore"]
