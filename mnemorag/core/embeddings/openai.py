"""
OpenAI embedder using official SDK.
"""

from openai import AsyncOpenAI

from mnemorag.core.embeddings.base import Embedder
from mnemorag.utils.exceptions import EmbeddingError, ValidationError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for entity and report profiles.

    Supports models like text-embedding-3-small, text-embedding-3-large, etc.
    """

    # Known dimensions for OpenAI embedding models
    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        vectors = await self.batch_embed([text], **kwargs)
        return vectors[0]

    async def batch_embed(
        self, texts: list[str], batch_size: int = 2048, **kwargs
    ) -> list[list[float]]:
        """
        Batch embed using OpenAI's native batch API (max 2048 inputs per request).

        Raises:
            ValidationError: If texts list is invalid
            EmbeddingError: If batch embedding fails
        """
        if not texts:
            raise ValidationError("Texts list cannot be empty")

        embeddings: list[list[float]] = []
        try:
            for i in range(0, len(texts), batch_size):
                batch = texts[i : i + batch_size]
                response = await self.client.embeddings.create(
                    model=self.model, input=batch, **kwargs
                )
                if not response.data or len(response.data) != len(batch):
                    raise EmbeddingError("OpenAI returned incomplete embedding response")
                ordered = sorted(response.data, key=lambda item: item.index)
                embeddings.extend(item.embedding for item in ordered)
        except EmbeddingError:
            raise
        except Exception as e:
            logger.bind(
                model=self.model,
                num_texts=len(texts),
                error=str(e),
                error_type=type(e).__name__,
            ).error(
                f"OpenAI embedding error: {e}",
            )
            raise EmbeddingError(f"OpenAI embedding error: {e}") from e
        return embeddings

    async def get_dimension(self) -> int:
        if self.model in self._MODEL_DIMENSIONS:
            return self._MODEL_DIMENSIONS[self.model]
        return await super().get_dimension()

    async def close(self) -> None:
        """Close OpenAI client."""
        await self.client.close()
