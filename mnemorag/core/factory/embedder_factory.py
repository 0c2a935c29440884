"""
Factory for creating embedder providers.
"""

from mnemorag.config import EmbedderConfig
from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.embeddings.ollama import OllamaEmbedder
from mnemorag.core.embeddings.openai import OpenAIEmbedder
from mnemorag.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                timeout=config.timeout,
            )
        else:
            raise ConfigurationError(
                f"Unsupported embedder provider: {config.provider}",
                context={"provider": config.provider},
            )

    @staticmethod
    async def get_dimension(embedder: Embedder, config: EmbedderConfig | None = None) -> int:
        """
        Get embedding dimension, preferring the configured value.

        Falls back to asking the embedder, which may embed a sample string.
        """
        if config and config.dimension:
            return config.dimension
        return await embedder.get_dimension()
