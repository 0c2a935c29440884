"""
Abstract base class for entity/relationship extraction providers.
"""

from abc import ABC, abstractmethod

from mnemorag.models.extraction import ExtractionResult


class ExtractionProvider(ABC):
    """
    Turns memory text into validated entities and relationships.

    Implementations must return only boundary-validated items; malformed
    items are counted in `ExtractionResult.quarantined`.
    """

    @abstractmethod
    async def extract(self, text: str) -> ExtractionResult:
        """
        Extract entities and relationships from text.

        Args:
            text: Memory content

        Returns:
            ExtractionResult

        Raises:
            ExtractionError: If extraction fails and no fallback applies
        """
        pass

    async def close(self) -> None:
        """Close any open connections."""
        return None
