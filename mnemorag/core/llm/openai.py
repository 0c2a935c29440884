"""
OpenAI LLM provider using official SDK.
"""

from openai import AsyncOpenAI
from pydantic import BaseModel

from mnemorag.core.llm.base import LLMProvider, build_messages
from mnemorag.utils.exceptions import LLMError, ValidationError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """
    OpenAI LLM provider.

    Structured requests go through the Parse API so extraction payloads and
    community reports come back as validated pydantic models. A fixed `seed`
    is sent with every request to keep repeated builds reproducible.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 120.0,
        seed: int | None = 0,
    ):
        self.model = model
        self.seed = seed
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

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

        params = {
            "model": self.model,
            "messages": build_messages(prompt, system_prompt),
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }
        if self.seed is not None:
            params.setdefault("seed", self.seed)

        try:
            if response_format:
                response = await self.client.chat.completions.parse(
                    **params, response_format=response_format
                )
                self._log_usage(response, response_format.__name__)
                parsed = response.choices[0].message.parsed
                if not parsed:
                    raise LLMError(
                        "OpenAI returned empty parsed response",
                        context={"response_format": response_format.__name__},
                    )
                return parsed

            response = await self.client.chat.completions.create(**params)
            self._log_usage(response, "text")
            content = response.choices[0].message.content
            if not content:
                raise LLMError("OpenAI returned empty content")
            return content
        except LLMError:
            raise
        except Exception as e:
            logger.bind(model=self.model, error=str(e), error_type=type(e).__name__).error(
                f"OpenAI API error: {e}",
            )
            raise LLMError(f"OpenAI API error: {e}", context={"model": self.model}) from e

    def _log_usage(self, response, request_kind: str) -> None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return
        logger.bind(
            model=self.model,
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
        ).debug(
            f"OpenAI {request_kind} completion used {usage.total_tokens} tokens",
        )

    async def close(self) -> None:
        """Close OpenAI client."""
        await self.client.close()
