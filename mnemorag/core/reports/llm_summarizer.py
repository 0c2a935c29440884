"""
LLM-powered community report summarizer.
"""

from mnemorag.core.extraction.prompts import (
    COMMUNITY_REPORT_SYSTEM_PROMPT,
    build_community_report_prompt,
)
from mnemorag.core.llm.base import LLMProvider
from mnemorag.core.reports.base import ReportContent, ReportSummarizer
from mnemorag.core.reports.statistical import StatisticalSummarizer
from mnemorag.core.tokenizer import Tokenizer
from mnemorag.models.graph import Community, Entity, Relationship
from mnemorag.utils.exceptions import LLMError, MnemoRAGError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class LLMSummarizer(ReportSummarizer):
    """
    Writes community reports with an LLM.

    Member listings are truncated to `max_prompt_tokens`. When the LLM fails
    and `use_fallback_on_error` is set, the statistical report is returned.
    """

    def __init__(
        self,
        llm: LLMProvider,
        tokenizer: Tokenizer | None = None,
        max_tokens: int = 1500,
        max_prompt_tokens: int = 6000,
        use_fallback_on_error: bool = True,
    ):
        self.llm = llm
        self.tokenizer = tokenizer or Tokenizer()
        self.max_tokens = max_tokens
        self.max_prompt_tokens = max_prompt_tokens
        self.use_fallback_on_error = use_fallback_on_error
        self.fallback = StatisticalSummarizer()

    async def summarize(
        self,
        community: Community,
        entities: list[Entity],
        relationships: list[Relationship],
    ) -> ReportContent:
        names = {entity.id: entity.canonical_name for entity in entities}
        entity_lines = [
            f"- {entity.canonical_name} ({entity.entity_type.value}): "
            f"{entity.description or 'No description'}"
            for entity in entities
        ]
        relationship_lines = [self._relationship_line(rel, names) for rel in relationships]

        # Entities take priority over relationships in the prompt budget
        entity_lines = self._fit_lines(entity_lines, self.max_prompt_tokens)
        remaining = self.max_prompt_tokens - self.tokenizer.count_tokens("\n".join(entity_lines))
        relationship_lines = self._fit_lines(relationship_lines, remaining)
        prompt = build_community_report_prompt(entity_lines, relationship_lines)

        try:
            content = await self.llm.complete(
                prompt,
                response_format=ReportContent,
                max_tokens=self.max_tokens,
                temperature=0.0,
                system_prompt=COMMUNITY_REPORT_SYSTEM_PROMPT,
            )
        except MnemoRAGError as e:
            if not self.use_fallback_on_error:
                raise LLMError(f"Report generation failed: {e}", context=e.context) from e
            logger.bind(community_id=community.id, error=str(e)).warning(
                f"LLM report generation failed for {community.id}, using statistical report: {e}",
            )
            return await self.fallback.summarize(community, entities, relationships)

        return content

    async def close(self) -> None:
        await self.llm.close()

    def _fit_lines(self, lines: list[str], budget: int) -> list[str]:
        kept: list[str] = []
        used = 0
        for line in lines:
            cost = self.tokenizer.count_tokens(line) + 1
            if used + cost > budget:
                break
            kept.append(line)
            used += cost
        return kept

    @staticmethod
    def _relationship_line(rel: Relationship, names: dict[str, str]) -> str:
        source = names.get(rel.source_entity_id, rel.source_entity_id)
        target = names.get(rel.target_entity_id, rel.target_entity_id)
        line = f"- {source} -[{rel.relationship_type}]-> {target} (strength {rel.strength})"
        if rel.description:
            line += f": {rel.description}"
        return line
