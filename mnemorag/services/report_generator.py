"""
Report Generator - keeps one current report per community.
"""

from pydantic import BaseModel, Field

from mnemorag.core.graph_store.base import GraphStore
from mnemorag.core.reports.base import ReportSummarizer
from mnemorag.models.graph import Community, CommunityReport, Entity, Relationship
from mnemorag.utils.exceptions import MnemoRAGError
from mnemorag.utils.id_generator import generate_report_id
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class ReportGenerationOutcome(BaseModel):
    generated: list[CommunityReport] = Field(default_factory=list)
    # Reports overwritten by a regeneration under a different id
    replaced: list[CommunityReport] = Field(default_factory=list)
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class ReportGenerator:
    """
    Generates community reports through a ReportSummarizer.

    A community needs a report when it has none, or when its report was
    written under a different prompt version. Community ids are derived
    from membership, so a community whose composition changed is a new
    community without a report.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        summarizer: ReportSummarizer,
        prompt_version: str = "v1",
        max_entities: int = 50,
        max_relationships: int = 100,
    ):
        self.graph_store = graph_store
        self.summarizer = summarizer
        self.prompt_version = prompt_version
        self.max_entities = max_entities
        self.max_relationships = max_relationships

    async def communities_needing_reports(self) -> list[Community]:
        communities = await self.graph_store.list_communities()
        reports = {report.community_id: report for report in await self.graph_store.list_reports()}
        return [
            community
            for community in communities
            if community.id not in reports
            or reports[community.id].prompt_version != self.prompt_version
        ]

    async def generate_missing(
        self, communities: list[Community] | None = None
    ) -> ReportGenerationOutcome:
        """
        Generate reports for every community lacking a current one.

        `communities` short-circuits the lookup when the caller already has
        the result of communities_needing_reports().

        A failing summarizer call is logged and counted; the remaining
        communities still get their reports.
        """
        outcome = ReportGenerationOutcome()

        if communities is None:
            communities = await self.communities_needing_reports()

        for community in communities:
            try:
                report, previous = await self.generate(community)
            except MnemoRAGError as e:
                logger.bind(community_id=community.id, error=str(e)).warning(
                    f"Report generation failed for community {community.id}: {e}",
                )
                outcome.failed += 1
                outcome.errors.append(f"report {community.id}: {e}")
                continue

            outcome.generated.append(report)
            if previous is not None and previous.id != report.id:
                outcome.replaced.append(previous)

        logger.bind(generated=len(outcome.generated), failed=outcome.failed).info(
            f"Generated {len(outcome.generated)} community reports",
        )
        return outcome

    async def generate(
        self, community: Community
    ) -> tuple[CommunityReport, CommunityReport | None]:
        """
        Summarize one community and persist its report.

        A stale report is replaced in place, keeping its id so its vector is
        overwritten rather than orphaned.

        Returns:
            (new report, report it replaced or None)
        """
        entities = await self._member_entities(community)
        relationships = await self._member_relationships(community, entities)

        content = await self.summarizer.summarize(community, entities, relationships)

        existing = await self.graph_store.get_report_for_community(community.id)
        report = CommunityReport(
            id=existing.id if existing else generate_report_id(),
            community_id=community.id,
            title=content.title,
            summary=content.summary,
            full_content=content.full_content,
            key_findings=content.key_findings,
            rating=content.rating,
            rating_explanation=content.rating_explanation,
            prompt_version=self.prompt_version,
            embedding_id=existing.embedding_id if existing else None,
        )
        previous = await self.graph_store.save_report(report)
        return report, previous

    async def _member_entities(self, community: Community) -> list[Entity]:
        member_ids = community.member_ids or await self.graph_store.get_community_members(
            community.id
        )
        entities = await self.graph_store.get_entities(member_ids)
        entities.sort(key=lambda e: (-e.mention_count, e.canonical_name.lower()))
        return entities[: self.max_entities]

    async def _member_relationships(
        self, community: Community, entities: list[Entity]
    ) -> list[Relationship]:
        member_ids = set(community.member_ids) or {entity.id for entity in entities}
        seen: dict[str, Relationship] = {}
        for entity in entities:
            for relationship in await self.graph_store.get_relationships_for_entity(entity.id):
                if (
                    relationship.source_entity_id in member_ids
                    and relationship.target_entity_id in member_ids
                ):
                    seen[relationship.id] = relationship
        relationships = sorted(seen.values(), key=lambda r: (-r.strength, r.id))
        return relationships[: self.max_relationships]
