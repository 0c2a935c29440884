"""Shared fixtures and fakes for mnemorag tests.

Fixtures use function scope to avoid event loop issues. Stores run against
real SQLite files under tmp_path; remote collaborators (embedder, vector
store, extraction) are replaced with in-process fakes.
"""

import hashlib
from collections.abc import AsyncGenerator
from typing import Any

import pytest

from mnemorag.config import Config
from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.graph_store.sqlite_store import SQLiteGraphStore
from mnemorag.core.memory_store.sqlite_store import SQLiteMemoryStore
from mnemorag.core.vector_store.base import VectorSearchResult, VectorStore
from mnemorag.models.extraction import (
    ExtractedEntity,
    ExtractedRelationship,
    ExtractionResult,
)
from mnemorag.models.graph import EntityType
from mnemorag.models.memory import Memory
from mnemorag.utils.exceptions import EmbeddingError, ExtractionError, VectorStoreError

# Fakes


class TrackingVectorStore(VectorStore):
    """In-memory vector store that records every call."""

    def __init__(self):
        self.vectors: dict[str, tuple[list[float], dict[str, Any]]] = {}
        self.upserts: list[str] = []
        self.deletes: list[str] = []
        self.fail_upserts = 0
        self.fail_deletes = 0

    async def initialize(self) -> None:
        return None

    async def upsert(self, id: str, vector: list[float], payload: dict[str, Any]) -> str:
        if self.fail_upserts:
            self.fail_upserts -= 1
            raise VectorStoreError("upsert unavailable")
        self.upserts.append(id)
        self.vectors[id] = (vector, dict(payload))
        return id

    async def search(
        self,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[VectorSearchResult]:
        results = []
        for vector_id, (stored, payload) in self.vectors.items():
            if filters and any(payload.get(k) != v for k, v in filters.items()):
                continue
            score = sum(a * b for a, b in zip(vector, stored))
            results.append(VectorSearchResult(id=vector_id, score=score, payload=payload))
        results.sort(key=lambda r: -r.score)
        return results[:limit]

    async def delete(self, id: str) -> bool:
        if self.fail_deletes:
            self.fail_deletes -= 1
            raise VectorStoreError("delete unavailable")
        self.deletes.append(id)
        return self.vectors.pop(id, None) is not None

    async def delete_by_memory_id(self, memory_id: str) -> bool:
        matching = [k for k, (_, p) in self.vectors.items() if p.get("memory_id") == memory_id]
        for vector_id in matching:
            del self.vectors[vector_id]
        return bool(matching)

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        if not filters:
            return len(self.vectors)
        return sum(
            1
            for _, payload in self.vectors.values()
            if all(payload.get(k) == v for k, v in filters.items())
        )

    async def close(self) -> None:
        return None

    def ids_of_type(self, vector_type: str) -> set[str]:
        return {k for k, (_, p) in self.vectors.items() if p.get("type") == vector_type}


class KeywordEmbedder(Embedder):
    """Deterministic hash-bucket embedder."""

    def __init__(self, dimension: int = 16):
        self.dimension = dimension
        self.calls = 0
        self.fail = False

    async def embed(self, text: str, **kwargs) -> list[float]:
        if self.fail:
            raise EmbeddingError("embedder unavailable")
        self.calls += 1
        vector = [0.0] * self.dimension
        for word in text.lower().split():
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return vector

    async def get_dimension(self) -> int:
        return self.dimension


class ScriptedExtractor(ExtractionProvider):
    """
    Extracts capitalised words that appear in `vocabulary`, and relates
    every pair found in the same memory.
    """

    def __init__(self, vocabulary: dict[str, EntityType] | None = None):
        self.vocabulary = vocabulary or {}
        self.calls: list[str] = []
        self.failing: set[str] = set()

    async def extract(self, text: str) -> ExtractionResult:
        self.calls.append(text)
        if any(marker in text for marker in self.failing):
            raise ExtractionError("extraction collaborator failed")

        words = [word.strip(".,;:!?") for word in text.split()]
        names: list[str] = []
        for word in words:
            if word in self.vocabulary and word not in names:
                names.append(word)

        entities = [
            ExtractedEntity(
                canonical_name=name,
                entity_type=self.vocabulary[name],
                description=f"{name} as used in this project",
                confidence=0.8,
                mention_text=name,
            )
            for name in names
        ]
        relationships = [
            ExtractedRelationship(
                source_entity=left,
                target_entity=right,
                relationship_type="RELATED_TO",
                description=f"{left} relates to {right}",
                strength=6,
                confidence=0.8,
            )
            for i, left in enumerate(names)
            for right in names[i + 1 :]
        ]
        return ExtractionResult(entities=entities, relationships=relationships)


VOCABULARY = {
    "React": EntityType.TECHNOLOGY,
    "Redis": EntityType.TECHNOLOGY,
    "PostgreSQL": EntityType.TECHNOLOGY,
    "Docker": EntityType.TECHNOLOGY,
    "Kubernetes": EntityType.TECHNOLOGY,
    "Alice": EntityType.PERSON,
    "Bob": EntityType.PERSON,
    "Stripe": EntityType.ORGANIZATION,
}


# Fixtures


@pytest.fixture
def test_config() -> Config:
    config = Config()
    config.build.vector_retry_delay = 0.0
    return config


@pytest.fixture
async def memory_store(tmp_path) -> AsyncGenerator[SQLiteMemoryStore, None]:
    store = SQLiteMemoryStore(str(tmp_path / "mnemorag.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def graph_store(memory_store) -> AsyncGenerator[SQLiteGraphStore, None]:
    """Graph store sharing the memory store's connection."""
    store = SQLiteGraphStore(connection=await memory_store.get_database())
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def vector_store() -> TrackingVectorStore:
    return TrackingVectorStore()


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def extractor() -> ScriptedExtractor:
    return ScriptedExtractor(VOCABULARY)


@pytest.fixture
def make_memory():
    def _make(memory_id: str, content: str) -> Memory:
        return Memory(id=memory_id, content=content)

    return _make
