"""
Abstract base class for embedding providers.
"""

from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Graph builds embed entity profiles and community report summaries;
    every vector produced by one embedder must share the same dimension.
    """

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If embedding generation fails
        """
        pass

    async def batch_embed(
        self, texts: list[str], batch_size: int = 32, **kwargs
    ) -> list[list[float]]:
        """
        Generate embeddings for multiple texts, preserving input order.

        Default implementation processes sequentially.
        """
        embeddings = []
        for text in texts:
            embeddings.append(await self.embed(text, **kwargs))
        return embeddings

    async def get_dimension(self) -> int:
        """Embedding dimension, measured on a test string unless overridden."""
        test_embedding = await self.embed("dimension check")
        return len(test_embedding)

    async def close(self) -> None:
        """Close any open connections."""
        return None
