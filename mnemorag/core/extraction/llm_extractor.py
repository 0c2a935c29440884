"""
LLM-powered entity and relationship extraction.
"""

from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.extraction.heuristic import HeuristicExtractor
from mnemorag.core.extraction.prompts import (
    ENTITY_EXTRACTION_SYSTEM_PROMPT,
    build_entity_extraction_prompt,
)
from mnemorag.core.llm.base import LLMProvider
from mnemorag.core.tokenizer import Tokenizer
from mnemorag.models.extraction import (
    EntityExtractionPayload,
    ExtractionResult,
    parse_extraction_payload,
)
from mnemorag.utils.exceptions import ExtractionError, MnemoRAGError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class LLMExtractor(ExtractionProvider):
    """
    Extracts entities with an LLM, falling back to HeuristicExtractor.

    Content is truncated to `max_content_tokens` before prompting. Items
    under `min_confidence` are dropped; when the LLM yields entities but
    no usable relationships, co-occurrence relationships are derived from
    the text instead.
    """

    def __init__(
        self,
        llm: LLMProvider,
        tokenizer: Tokenizer | None = None,
        min_confidence: float = 0.5,
        max_content_tokens: int = 4000,
        max_tokens: int = 2000,
        use_fallback_on_error: bool = True,
    ):
        self.llm = llm
        self.tokenizer = tokenizer or Tokenizer()
        self.min_confidence = min_confidence
        self.max_content_tokens = max_content_tokens
        self.max_tokens = max_tokens
        self.use_fallback_on_error = use_fallback_on_error
        self.fallback = HeuristicExtractor()

    async def extract(self, text: str) -> ExtractionResult:
        content = self.tokenizer.truncate(text, self.max_content_tokens)

        try:
            payload = await self.llm.complete(
                build_entity_extraction_prompt(content),
                response_format=EntityExtractionPayload,
                max_tokens=self.max_tokens,
                temperature=0.0,
                system_prompt=ENTITY_EXTRACTION_SYSTEM_PROMPT,
            )
        except MnemoRAGError as e:
            if not self.use_fallback_on_error:
                raise ExtractionError(f"LLM extraction failed: {e}", context=e.context) from e
            logger.bind(error=str(e), error_type=type(e).__name__).warning(
                f"LLM extraction failed, using heuristic fallback: {e}",
            )
            return await self.fallback.extract(text)

        result = parse_extraction_payload(payload, min_confidence=self.min_confidence)

        if result.entities and not result.relationships:
            result.relationships = self.fallback.extract_relationships(result.entities, content)

        return result

    async def close(self) -> None:
        await self.llm.close()
