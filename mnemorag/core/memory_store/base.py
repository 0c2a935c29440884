"""
Base interface for raw memory persistence.

The graph engine only reads memories; writes belong to the surrounding
application.
"""

from abc import ABC, abstractmethod

import aiosqlite

from mnemorag.models.memory import Memory


class MemoryStore(ABC):
    """Abstract base class for memory storage implementations."""

    @abstractmethod
    async def list_memories(self) -> list[Memory]:
        """
        List every stored memory.

        Returns:
            Memories ordered by id
        """
        pass

    @abstractmethod
    async def get_memories_by_ids(self, memory_ids: list[str]) -> list[Memory]:
        """
        Fetch memories by id.

        Args:
            memory_ids: Memory identifiers; unknown ids are ignored

        Returns:
            Memories found, ordered by id
        """
        pass

    @abstractmethod
    async def get_database(self) -> aiosqlite.Connection:
        """Shared transactional handle for stores living in the same database."""
        pass
