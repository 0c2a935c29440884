"""
Ollama LLM provider using native ollama-python SDK.
"""

import ollama
from pydantic import BaseModel

from mnemorag.core.llm.base import LLMProvider, build_messages
from mnemorag.utils.exceptions import LLMError, ValidationError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider.

    Structured output passes the pydantic JSON schema as Ollama's `format`;
    the reply is validated against the same model. `seed` pins sampling so
    re-extracting an unchanged memory yields the same entities.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
        seed: int | None = 0,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self.seed = seed
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        system_prompt: str | None = None,
        **kwargs,
    ) -> BaseModel | str:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.pop("options", {}),
        }
        if self.seed is not None:
            options.setdefault("seed", self.seed)
        format_schema = response_format.model_json_schema() if response_format else None

        try:
            response = await self.client.chat(
                model=self.model,
                messages=build_messages(prompt, system_prompt),
                format=format_schema,
                options=options,
                **kwargs,
            )
            content = response["message"]["content"]
        except Exception as e:
            logger.bind(model=self.model, host=self.host, error=str(e)).error(
                f"Ollama API error: {e}",
            )
            raise LLMError(f"Ollama API error: {e}") from e

        if not content:
            raise LLMError("Ollama returned empty content")

        if response_format is None:
            return content

        try:
            return response_format.model_validate_json(self._extract_json(content))
        except Exception as e:
            raise LLMError(
                f"Failed to parse structured output as {response_format.__name__}: {e}",
                context={"raw_response": content[:500]},
            ) from e

    def _extract_json(self, content: str) -> str:
        """Strip markdown code fences around a JSON body."""
        content = content.strip()
        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()
        return content
