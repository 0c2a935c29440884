"""
Factory for creating vector store backends.
"""

from mnemorag.config import QdrantConfig
from mnemorag.core.vector_store.base import VectorStore
from mnemorag.core.vector_store.qdrant import QdrantStore


class VectorStoreFactory:
    """Factory for creating vector store backends from configuration."""

    @staticmethod
    def create(config: QdrantConfig, vector_size: int) -> VectorStore:
        """
        Create vector store from configuration.

        Args:
            config: Qdrant configuration
            vector_size: Embedding dimension size

        Returns:
            Vector store instance
        """
        return QdrantStore(
            url=config.url,
            collection_name=config.collection_name,
            vector_size=vector_size,
            use_grpc=config.use_grpc,
            use_quantization=config.use_quantization,
            hnsw_m=config.hnsw_m,
            hnsw_ef_construct=config.hnsw_ef_construct,
            on_disk=config.on_disk,
            timeout=config.timeout,
        )
