"""
Abstract base class for LLM providers.
Handles text generation with optional structured outputs.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


def build_messages(prompt: str, system_prompt: str | None = None) -> list[dict[str, str]]:
    """Chat messages for a single-turn request."""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    return messages


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Used for entity extraction and community report summarization. Both run
    at temperature 0 so that rebuilding unchanged memories reproduces the
    same graph as closely as the provider allows.
    """

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        system_prompt: str | None = None,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion from prompt.

        Args:
            prompt: The input prompt
            response_format: Optional Pydantic model for structured output
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)
            system_prompt: Optional instructions sent ahead of the prompt
            **kwargs: Provider-specific parameters

        Returns:
            Pydantic model instance if response_format provided, else string

        Raises:
            ValidationError: If the prompt is empty
            LLMError: If the provider call or structured parsing fails
        """
        pass

    async def close(self) -> None:
        """Close any open connections."""
        return None
