"""
Shared test fixtures for vector store tests.
"""

import pytest

from mnemorag.core.vector_store.qdrant import QdrantStore


@pytest.fixture
def qdrant_store():
    """Create Qdrant store for testing."""
    return QdrantStore(
        url="http://localhost:6333",
        collection_name="test_graph",
        vector_size=768,
        use_grpc=True,
    )


@pytest.fixture
def entity_payload():
    """Payload as written by the vector synchronizer for one entity."""
    return {
        "type": "graphrag_entity",
        "memory_id": "graphrag_entity:ent_1",
        "entity_id": "ent_1",
        "canonical_name": "React",
        "entity_type": "TECHNOLOGY",
        "mention_count": 2,
    }
