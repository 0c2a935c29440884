"""
Ollama embedder using native ollama-python SDK.
"""

import ollama

from mnemorag.core.embeddings.base import Embedder
from mnemorag.utils.exceptions import EmbeddingError, ValidationError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for entity and report profiles.

    Supports models like nomic-embed-text, mxbai-embed-large, etc.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self._dimension: int | None = None

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        vectors = await self._embed_many([text], **kwargs)
        return vectors[0]

    async def batch_embed(
        self, texts: list[str], batch_size: int = 32, **kwargs
    ) -> list[list[float]]:
        """
        Embed texts using Ollama's multi-input endpoint, batch_size inputs per request.

        Raises:
            ValidationError: If any text is empty
            EmbeddingError: If Ollama embedding fails
        """
        if any(not text or not text.strip() for text in texts):
            raise ValidationError("Texts cannot be empty")

        embeddings: list[list[float]] = []
        for i in range(0, len(texts), batch_size):
            embeddings.extend(await self._embed_many(texts[i : i + batch_size], **kwargs))
        return embeddings

    async def _embed_many(self, texts: list[str], **kwargs) -> list[list[float]]:
        try:
            response = await self.client.embed(model=self.model, input=texts, **kwargs)
            vectors = response["embeddings"]
        except Exception as e:
            logger.bind(model=self.model, host=self.host, error=str(e)).error(
                f"Ollama embedding error: {e}",
            )
            raise EmbeddingError(f"Ollama embedding error: {e}") from e

        if not vectors or len(vectors) != len(texts):
            raise EmbeddingError(
                "Ollama returned invalid embedding response",
                context={"expected": len(texts), "received": len(vectors or [])},
            )
        return [list(vector) for vector in vectors]

    async def get_dimension(self) -> int:
        if self._dimension is None:
            self._dimension = await super().get_dimension()
        return self._dimension
