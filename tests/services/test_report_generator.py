"""
Tests for ReportGenerator.
"""

import pytest

from mnemorag.core.reports import ReportSummarizer, StatisticalSummarizer
from mnemorag.models.graph import Community, Entity, EntityType, Relationship
from mnemorag.services.report_generator import ReportGenerator
from mnemorag.utils.exceptions import LLMError


class FlakySummarizer(ReportSummarizer):
    """Fails for the listed community ids, otherwise delegates to statistics."""

    def __init__(self, failing: set[str]):
        self.failing = failing
        self.seen: list[tuple[str, int, int]] = []
        self.delegate = StatisticalSummarizer()

    async def summarize(self, community, entities, relationships):
        self.seen.append((community.id, len(entities), len(relationships)))
        if community.id in self.failing:
            raise LLMError("summarizer offline")
        return await self.delegate.summarize(community, entities, relationships)


@pytest.fixture
async def communities(graph_store):
    for index, (name, mentions) in enumerate([("React", 1), ("Redis", 4), ("Docker", 2)]):
        await graph_store.create_entity(
            Entity(
                id=f"ent_{index}",
                canonical_name=name,
                entity_type=EntityType.TECHNOLOGY,
                mention_count=mentions,
            )
        )
    await graph_store.create_relationship(
        Relationship(
            id="rel_in",
            source_entity_id="ent_0",
            target_entity_id="ent_1",
            relationship_type="USES",
            strength=8,
        )
    )
    await graph_store.create_relationship(
        Relationship(
            id="rel_out",
            source_entity_id="ent_1",
            target_entity_id="ent_2",
            relationship_type="USES",
            strength=2,
        )
    )
    await graph_store.replace_communities(
        [
            Community(id="com_0_a", level=0, entity_count=2, member_ids=["ent_0", "ent_1"]),
            Community(id="com_0_b", level=0, entity_count=1, member_ids=["ent_2"]),
        ]
    )
    return await graph_store.list_communities()


@pytest.mark.unit
@pytest.mark.asyncio
class TestReportGenerator:
    async def test_generates_missing_reports(self, graph_store, communities):
        generator = ReportGenerator(graph_store, StatisticalSummarizer(), prompt_version="v1")

        outcome = await generator.generate_missing()

        assert len(outcome.generated) == 2
        assert outcome.failed == 0
        report = await graph_store.get_report_for_community("com_0_a")
        assert report.prompt_version == "v1"
        assert report.title == "TECHNOLOGY Community (2 entities)"
        assert await generator.communities_needing_reports() == []

    async def test_only_internal_relationships_summarized(self, graph_store, communities):
        summarizer = FlakySummarizer(failing=set())
        generator = ReportGenerator(graph_store, summarizer)

        await generator.generate_missing()

        assert ("com_0_a", 2, 1) in summarizer.seen
        assert ("com_0_b", 1, 0) in summarizer.seen

    async def test_members_capped_by_mentions(self, graph_store, communities):
        generator = ReportGenerator(graph_store, StatisticalSummarizer(), max_entities=1)

        entities = await generator._member_entities(communities[0])

        assert [e.canonical_name for e in entities] == ["Redis"]

    async def test_prompt_version_change_regenerates_in_place(self, graph_store, communities):
        await ReportGenerator(graph_store, StatisticalSummarizer(), "v1").generate_missing()
        before = await graph_store.get_report_for_community("com_0_a")

        generator = ReportGenerator(graph_store, StatisticalSummarizer(), "v2")
        assert len(await generator.communities_needing_reports()) == 2
        outcome = await generator.generate_missing()

        after = await graph_store.get_report_for_community("com_0_a")
        assert after.id == before.id
        assert after.prompt_version == "v2"
        assert outcome.replaced == []

    async def test_failure_is_counted_and_others_continue(self, graph_store, communities):
        generator = ReportGenerator(graph_store, FlakySummarizer(failing={"com_0_a"}))

        outcome = await generator.generate_missing()

        assert outcome.failed == 1
        assert [r.community_id for r in outcome.generated] == ["com_0_b"]
        assert "com_0_a" in outcome.errors[0]
        assert await graph_store.get_report_for_community("com_0_a") is None
