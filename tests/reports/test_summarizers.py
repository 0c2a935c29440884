"""
Tests for community report summarizers.
"""

from unittest.mock import AsyncMock

import pytest

from mnemorag.config import TokenizerConfig
from mnemorag.core.llm.base import LLMProvider
from mnemorag.core.reports import LLMSummarizer, ReportContent, StatisticalSummarizer
from mnemorag.core.tokenizer import Tokenizer
from mnemorag.models.graph import Community, Entity, EntityType, Relationship
from mnemorag.utils.exceptions import LLMError


@pytest.fixture
def community():
    return Community(id="com_0_abc", level=0, entity_count=3, member_ids=["e1", "e2", "e3"])


@pytest.fixture
def members():
    entities = [
        Entity(id="e1", canonical_name="React", entity_type=EntityType.TECHNOLOGY, mention_count=3),
        Entity(id="e2", canonical_name="Redis", entity_type=EntityType.TECHNOLOGY, mention_count=1),
        Entity(id="e3", canonical_name="Alice", entity_type=EntityType.PERSON, mention_count=2),
    ]
    relationships = [
        Relationship(
            id="r1",
            source_entity_id="e1",
            target_entity_id="e2",
            relationship_type="INTEGRATES_WITH",
            description="React caches through Redis",
            strength=8,
        )
    ]
    return entities, relationships


@pytest.mark.unit
@pytest.mark.asyncio
class TestStatisticalSummarizer:
    async def test_report_fields(self, community, members):
        entities, relationships = members

        content = await StatisticalSummarizer().summarize(community, entities, relationships)

        assert content.title == "TECHNOLOGY Community (3 entities)"
        assert content.summary.startswith("A community of 3 entities, primarily technologys.")
        assert "Key entities include React, Alice, Redis." in content.summary
        assert "1 internal relationships" in content.full_content
        assert content.key_findings == [
            "Contains 3 entities",
            "Dominated by technology entities",
            "Most mentioned: React",
        ]
        assert content.rating == 5.0
        assert content.rating_explanation == "Auto-generated report (LLM unavailable)"

    async def test_empty_community(self, community):
        content = await StatisticalSummarizer().summarize(community, [], [])

        assert content.title == "OTHER Community (0 entities)"
        assert len(content.key_findings) == 2


class TestReportContent:
    def test_rating_clamped(self):
        content = ReportContent(
            title="t",
            summary="s",
            full_content="f",
            key_findings=[],
            rating=14,
            rating_explanation="r",
        )
        assert content.rating == 10.0


@pytest.mark.unit
@pytest.mark.asyncio
class TestLLMSummarizer:
    @pytest.fixture
    def mock_llm(self):
        return AsyncMock(spec=LLMProvider)

    @pytest.fixture
    def summarizer(self, mock_llm):
        return LLMSummarizer(
            llm=mock_llm, tokenizer=Tokenizer(TokenizerConfig(provider="approximate"))
        )

    async def test_prompt_lists_members(self, summarizer, mock_llm, community, members):
        expected = ReportContent(
            title="Frontend caching",
            summary="React relies on Redis.",
            full_content="Long form",
            key_findings=["Redis caches React state"],
            rating=7.5,
            rating_explanation="Core path",
        )
        mock_llm.complete.return_value = expected

        content = await summarizer.summarize(community, *members)

        assert content is expected
        prompt = mock_llm.complete.call_args.args[0]
        assert "- React (TECHNOLOGY): No description" in prompt
        assert "- React -[INTEGRATES_WITH]-> Redis (strength 8): React caches through Redis" in prompt
        assert mock_llm.complete.call_args.kwargs["response_format"] is ReportContent

    async def test_prompt_budget_drops_trailing_lines(self, mock_llm, community, members):
        summarizer = LLMSummarizer(
            llm=mock_llm,
            tokenizer=Tokenizer(TokenizerConfig(provider="approximate")),
            max_prompt_tokens=12,
        )
        mock_llm.complete.side_effect = LLMError("offline")

        await summarizer.summarize(community, *members)

        prompt = mock_llm.complete.call_args.args[0]
        assert "React (TECHNOLOGY)" in prompt
        assert "INTEGRATES_WITH" not in prompt
        assert "RELATIONSHIPS:\n(none)" in prompt

    async def test_fallback_to_statistical(self, summarizer, mock_llm, community, members):
        mock_llm.complete.side_effect = LLMError("offline")

        content = await summarizer.summarize(community, *members)

        assert content.rating_explanation == "Auto-generated report (LLM unavailable)"

    async def test_error_without_fallback(self, mock_llm, community, members):
        summarizer = LLMSummarizer(
            llm=mock_llm,
            tokenizer=Tokenizer(TokenizerConfig(provider="approximate")),
            use_fallback_on_error=False,
        )
        mock_llm.complete.side_effect = LLMError("offline")

        with pytest.raises(LLMError, match="Report generation failed"):
            await summarizer.summarize(community, *members)
