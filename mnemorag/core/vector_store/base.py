"""
Base interface for vector storage.

Vectors mirror searchable graph nodes; the graph store stays the source of
truth and references each vector only by id.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class VectorSearchResult(BaseModel):
    """Vector search result."""

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)


class VectorStore(ABC):
    """Abstract base class for vector storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the vector store (create collections/indices).

        Raises:
            VectorStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def upsert(self, id: str, vector: list[float], payload: dict[str, Any]) -> str:
        """
        Store or replace one vector.

        Args:
            id: Caller-chosen vector id
            vector: Embedding
            payload: Metadata stored alongside the vector

        Returns:
            The id under which the vector is stored

        Raises:
            ValidationError: If id or vector is empty
            VectorStoreError: If upsert operation fails
        """
        pass

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
        score_threshold: float | None = None,
    ) -> list[VectorSearchResult]:
        """
        Search for similar vectors.

        Args:
            vector: Query embedding vector
            limit: Maximum results
            filters: Optional exact-match payload filters
            score_threshold: Minimum similarity score

        Returns:
            List of search results ordered by score
        """
        pass

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """
        Delete one vector.

        Returns:
            True if a vector was deleted, False if none existed

        Raises:
            VectorStoreError: If deletion operation fails
        """
        pass

    @abstractmethod
    async def delete_by_memory_id(self, memory_id: str) -> bool:
        """
        Delete every vector whose payload `memory_id` matches.

        Returns:
            True if at least one vector was deleted
        """
        pass

    @abstractmethod
    async def count(self, filters: dict[str, Any] | None = None) -> int:
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""
        pass
